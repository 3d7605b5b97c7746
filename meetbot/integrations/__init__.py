"""
Integrations package for meetbot.

Each external service (Slack, Google OAuth, Google Calendar) has its own
subfolder. Persistence shared between them lives in `token_storage`.
"""
