"""Administrative recovery tokens.

A recovery token lets a support workflow switch off a subject's second
factor when both the authenticator and the backup codes are lost. Tokens
are high entropy, single use and stored hashed.
"""

from __future__ import annotations

import hashlib
import secrets

from .clock import IClock, SystemClock
from .ports import IRecoveryTokenStore

RECOVERY_TOKEN_BYTES = 32


def generate_recovery_token() -> str:
    """Return a new 256-bit recovery token as hex."""
    return secrets.token_hex(RECOVERY_TOKEN_BYTES)


def hash_recovery_token(token: str) -> str:
    """Hash a recovery token for storage (SHA-256)."""
    return hashlib.sha256(token.encode()).hexdigest()


class InMemoryRecoveryTokenStore(IRecoveryTokenStore):
    """In-memory recovery token store for testing and single-process use.

    Example:
        ```python
        store = InMemoryRecoveryTokenStore()
        token = store.issue("user-123", ttl=3600)
        send_to_support_agent(token)
        ...
        await coordinator.disable("user-123", token)
        ```
    """

    def __init__(self, *, clock: IClock | None = None) -> None:
        self.clock = clock or SystemClock()
        # subject_id -> (token hash, expires_at or None)
        self._tokens: dict[str, tuple[str, float | None]] = {}

    def issue(self, subject_id: str, ttl: float | None = None) -> str:
        """Issue a token for ``subject_id``, replacing any previous one."""
        token = generate_recovery_token()
        expires_at = self.clock.time() + ttl if ttl is not None else None
        self._tokens[subject_id] = (hash_recovery_token(token), expires_at)
        return token

    async def consume(self, subject_id: str, token: str) -> bool:
        entry = self._tokens.get(subject_id)
        if entry is None:
            return False

        stored_hash, expires_at = entry
        if expires_at is not None and self.clock.time() > expires_at:
            del self._tokens[subject_id]
            return False

        if secrets.compare_digest(stored_hash, hash_recovery_token(token)):
            del self._tokens[subject_id]
            return True
        return False


__all__: list[str] = [
    "InMemoryRecoveryTokenStore",
    "generate_recovery_token",
    "hash_recovery_token",
]
