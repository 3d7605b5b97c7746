"""
meetbot - Slack slash-command bot that creates Google Meet links.

This package contains:
- Slack request verification and the slash-command endpoint
- Google OAuth token lifecycle (consent URL, code exchange, silent refresh)
- Encrypted credential storage on Supabase
- The command orchestrator and FastAPI app
"""

__all__ = [
    "api",
    "config",
    "crypto",
    "errors",
    "models",
    "orchestrator",
    "rate_limiter",
    "services",
    "validation",
]
