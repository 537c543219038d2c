"""TOTP token verification (RFC 6238).

Codes are HMAC-SHA1 based, truncated to 6 digits, over 30 second time
steps derived from the wall clock. A window of N steps on each side of
the current step absorbs clock drift between server and authenticator.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import logging
import re
from datetime import datetime

import pyotp

from ..clock import IClock, SystemClock
from ..config import TotpConfig

logger = logging.getLogger("adaptive_twofactor.totp")

_BASE32_RE = re.compile(r"[A-Z2-7]+=*")
_DIGITS_RE = re.compile(r"[0-9]+")


def decode_secret(secret: str) -> bytes:
    """Decode a base32 secret, tolerating missing padding and lowercase.

    Raises:
        ValueError: On an empty or non-base32 secret.
    """
    normalized = secret.strip().upper().replace(" ", "")
    if not normalized or not _BASE32_RE.fullmatch(normalized):
        raise ValueError("Secret is not valid base32")
    normalized += "=" * ((8 - len(normalized) % 8) % 8)
    try:
        raw = base64.b32decode(normalized, casefold=True)
    except binascii.Error as exc:
        raise ValueError("Secret is not valid base32") from exc
    if not raw:
        raise ValueError("Secret is empty")
    return raw


class TokenVerifier:
    """Verifies submitted TOTP tokens against a stored base32 secret.

    Verification never raises on bad input: a malformed secret or a
    non-numeric token simply does not verify.

    Example:
        ```python
        verifier = TokenVerifier()
        if verifier.verify(stored_secret, "031337"):
            ...
        ```
    """

    def __init__(self, config: TotpConfig | None = None, *, clock: IClock | None = None) -> None:
        self.config = config or TotpConfig()
        self.clock = clock or SystemClock()

    def _timestamp(self, at: datetime | float | None) -> float:
        if at is None:
            return self.clock.time()
        if isinstance(at, datetime):
            return at.timestamp()
        return float(at)

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(
            secret.strip().upper().replace(" ", ""),
            digits=self.config.digits,
            interval=self.config.interval,
        )

    def time_step(self, at: datetime | float | None = None) -> int:
        """Return the RFC 6238 time step index for ``at`` (default: now)."""
        return int(self._timestamp(at)) // self.config.interval

    def code_at(self, secret: str, at: datetime | float | None = None) -> str:
        """Return the code valid at ``at``.

        Raises:
            ValueError: If the secret is not valid base32.
        """
        decode_secret(secret)
        return self._totp(secret).generate_otp(self.time_step(at))

    def match_step(
        self,
        secret: str,
        submitted_token: str,
        window: int | None = None,
        at: datetime | float | None = None,
    ) -> int | None:
        """Return the time step ``submitted_token`` belongs to, or None.

        Every candidate in the window is compared so the amount of work
        does not depend on where (or whether) the token matches.
        """
        if window is None:
            window = self.config.valid_window
        if window < 0:
            return None

        token = submitted_token.strip() if isinstance(submitted_token, str) else ""
        if len(token) != self.config.digits or not _DIGITS_RE.fullmatch(token):
            logger.debug("Rejected malformed TOTP token")
            return None

        try:
            decode_secret(secret)
        except ValueError:
            logger.warning("Rejected TOTP verification against a malformed secret")
            return None

        totp = self._totp(secret)
        current = self.time_step(at)
        matched: int | None = None
        for step in range(current - window, current + window + 1):
            if step < 0:
                continue
            candidate = totp.generate_otp(step)
            if hmac.compare_digest(candidate.encode("ascii"), token.encode("ascii")) and matched is None:
                matched = step
        return matched

    def verify(
        self,
        secret: str,
        submitted_token: str,
        window: int | None = None,
        at: datetime | float | None = None,
    ) -> bool:
        """Check ``submitted_token`` against ``secret``.

        Args:
            secret: Base32-encoded secret.
            submitted_token: Token typed by the subject (leading zeros matter).
            window: Accepted drift in steps; defaults to the configured window.
            at: Instant to verify at; defaults to the clock.

        Returns:
            True if the token matches a step in ``[now-window, now+window]``.
        """
        return self.match_step(secret, submitted_token, window=window, at=at) is not None


__all__: list[str] = ["TokenVerifier", "decode_secret"]
