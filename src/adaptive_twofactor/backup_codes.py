"""Backup codes for MFA recovery.

Generates and validates single-use recovery codes that subjects can use
when they lose access to their authenticator.
"""

from __future__ import annotations

import re
import secrets
import string
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from .config import BackupCodeConfig
from .exceptions import BackupCodeAlreadyUsedError, BackupCodeNotFoundError


@dataclass
class BackupCode:
    """A single recovery code.

    Attributes:
        code: Uppercase alphanumeric code.
        used: Whether the code has been consumed.
        used_at: When the code was consumed.
    """

    code: str
    used: bool = False
    used_at: datetime | None = None

    def __repr__(self) -> str:
        return f"BackupCode(code='********', used={self.used!r}, used_at={self.used_at!r})"

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "used": self.used,
            "used_at": self.used_at.isoformat() if self.used_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> BackupCode:
        used_at = data.get("used_at")
        if isinstance(used_at, str):
            used_at = datetime.fromisoformat(used_at)
        return cls(
            code=str(data["code"]),
            used=bool(data.get("used", False)),
            used_at=used_at if isinstance(used_at, datetime) else None,
        )


class BackupCodeManager:
    """Generates, checks and consumes backup codes.

    The manager is stateless: it operates on the code set handed to it,
    the enrollment store persists the set.

    Example:
        ```python
        manager = BackupCodeManager()
        codes = manager.generate()
        show_once([c.code for c in codes])

        # Later, when the subject lost their device
        manager.consume(codes, "7KQ2M9XA")
        ```
    """

    ALPHABET = string.ascii_uppercase + string.digits

    def __init__(self, config: BackupCodeConfig | None = None) -> None:
        self.config = config or BackupCodeConfig()
        self._format = re.compile(rf"[A-Z0-9]{{{self.config.length}}}")

    def _generate_code(self) -> str:
        return "".join(secrets.choice(self.ALPHABET) for _ in range(self.config.length))

    def generate(self, count: int | None = None) -> list[BackupCode]:
        """Generate a complete, fresh set of codes.

        Codes are unique within the set. They are not checked against
        earlier sets; regenerating replaces the previous set wholesale.

        Raises:
            ValueError: ``count`` is less than 1.
        """
        count = count if count is not None else self.config.count
        if count < 1:
            raise ValueError("count must be >= 1")
        seen: set[str] = set()
        codes: list[BackupCode] = []
        while len(codes) < count:
            code = self._generate_code()
            if code in seen:
                continue
            seen.add(code)
            codes.append(BackupCode(code=code))
        return codes

    def validate_format(self, code: str) -> bool:
        """Check the code shape only; storage is not consulted."""
        return isinstance(code, str) and self._format.fullmatch(code) is not None

    def consume(
        self,
        codes: Sequence[BackupCode],
        submitted_code: str,
        at: datetime | None = None,
    ) -> BackupCode:
        """Mark the matching unused code as used.

        Args:
            codes: The subject's current code set (mutated in place).
            submitted_code: Code as submitted (exact match).
            at: Consumption time; defaults to now (UTC).

        Returns:
            The consumed code.

        Raises:
            BackupCodeNotFoundError: No code in the set matches.
            BackupCodeAlreadyUsedError: The matching code was used before.
        """
        submitted = submitted_code.encode("utf-8")
        match: BackupCode | None = None
        for candidate in codes:
            if secrets.compare_digest(candidate.code.encode("utf-8"), submitted) and match is None:
                match = candidate
        if match is None:
            raise BackupCodeNotFoundError("Backup code not found")
        if match.used:
            raise BackupCodeAlreadyUsedError("Backup code already used")
        match.used = True
        match.used_at = at or datetime.now(timezone.utc)
        return match

    @staticmethod
    def remaining(codes: Iterable[BackupCode]) -> int:
        """Number of unused codes in the set."""
        return sum(1 for code in codes if not code.used)


__all__: list[str] = ["BackupCode", "BackupCodeManager"]
