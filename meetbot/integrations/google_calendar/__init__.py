"""
Google Calendar integration for meetbot.

Provides Meet link creation. The OAuth callback route lives in `routes`.
"""
from .client import GoogleCalendarClient

__all__ = ["GoogleCalendarClient"]
