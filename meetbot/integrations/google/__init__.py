"""
Google OAuth integration.

Provides the per-user token lifecycle (authorization URL, code exchange,
silent refresh) and the CSRF state store used by the flow.
"""
from .oauth import GoogleOAuthConfig, TokenLifecycleManager
from .state import OAuthStateStore

__all__ = ["GoogleOAuthConfig", "OAuthStateStore", "TokenLifecycleManager"]
