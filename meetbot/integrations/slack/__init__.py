"""
Slack integration for meetbot.

Request verification and the slash-command endpoint.
"""
from .verification import SlackRequestVerifier, VerificationResult

__all__ = ["SlackRequestVerifier", "VerificationResult"]
