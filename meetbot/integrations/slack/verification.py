"""
Slack request signature verification.

Slack signs every request with the app's signing secret:

    X-Slack-Request-Timestamp: <unix seconds>
    X-Slack-Signature:         v0=<hex hmac_sha256(secret, "v0:<ts>:<body>")>

A request is accepted only if the signature matches and the timestamp is
within five minutes of now. Both checks always run so that every rejection
costs the same. Bodies that are not valid UTF-8 never verify.
"""
from __future__ import annotations

import hmac
import logging
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Union

from slack_sdk.signature import SignatureVerifier

from ...errors import RejectionReason


logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-slack-signature"
TIMESTAMP_HEADER = "x-slack-request-timestamp"
SIGNATURE_VERSION = "v0"
MAX_AGE_SECONDS = 300


@dataclass(frozen=True)
class VerificationResult:
    accepted: bool
    reason: Optional[RejectionReason] = None

    @classmethod
    def accept(cls) -> "VerificationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectionReason) -> "VerificationResult":
        return cls(accepted=False, reason=reason)

    def __bool__(self) -> bool:
        return self.accepted


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # Starlette headers are case-insensitive already; plain dicts are not.
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if key.lower() == name:
                return candidate
    return value


class SlackRequestVerifier:
    """
    Verifies inbound Slack requests. Holds only immutable configuration, so a
    single instance can be shared by concurrent requests.

    Args:
        signing_secret: The Slack app's signing secret
        max_age_seconds: Allowed clock skew either side of now
        clock: Returns current unix time in seconds
    """

    def __init__(
        self,
        signing_secret: str,
        max_age_seconds: int = MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if not signing_secret:
            raise ValueError("signing_secret is required")
        self._signer = SignatureVerifier(signing_secret)
        self._max_age = max_age_seconds
        self._clock = clock

    def verify(self, raw_body: Union[bytes, str], headers: Mapping[str, str]) -> VerificationResult:
        """
        Check signature and freshness of a request.

        Args:
            raw_body: The request body exactly as received
            headers: Request headers

        Returns:
            Accepted, or Rejected with SIGNATURE_INVALID, STALE_TIMESTAMP or
            MALFORMED_HEADERS
        """
        signature = _header(headers, SIGNATURE_HEADER)
        timestamp = _header(headers, TIMESTAMP_HEADER)

        if not signature or not timestamp:
            logger.warning("Slack request missing signature or timestamp header")
            return VerificationResult.reject(RejectionReason.MALFORMED_HEADERS)

        try:
            request_ts = int(timestamp.strip())
        except ValueError:
            logger.warning("Slack request timestamp is not an integer")
            return VerificationResult.reject(RejectionReason.MALFORMED_HEADERS)

        if not signature.startswith(f"{SIGNATURE_VERSION}="):
            logger.warning("Slack signature has an unknown version prefix")
            return VerificationResult.reject(RejectionReason.MALFORMED_HEADERS)

        fresh = abs(self._clock() - request_ts) <= self._max_age
        try:
            body = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
        except UnicodeDecodeError:
            logger.warning("Slack request body is not valid UTF-8")
            body = None

        signature_ok = False
        if body is not None:
            expected = self._signer.generate_signature(timestamp=timestamp.strip(), body=body)
            signature_ok = hmac.compare_digest(
                expected.encode("utf-8"),
                signature.encode("utf-8"),
            )

        if not fresh:
            logger.warning(f"Slack request timestamp outside window: {request_ts}")
            return VerificationResult.reject(RejectionReason.STALE_TIMESTAMP)
        if not signature_ok:
            logger.warning("Slack signature verification failed")
            return VerificationResult.reject(RejectionReason.SIGNATURE_INVALID)

        logger.debug("Slack signature verification successful")
        return VerificationResult.accept()
