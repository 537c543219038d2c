"""TOTP secret provisioning.

Creates fresh secret material and the otpauth:// URI an authenticator app
(Google Authenticator, Microsoft Authenticator, Authy, 1Password, ...)
consumes, usually after a collaborator renders it as a QR code.

Uses pyotp for the URI format.
"""

from __future__ import annotations

import base64
import logging
import secrets
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone

import pyotp

from ..clock import IClock, SystemClock
from ..config import TotpConfig
from ..exceptions import GenerationError

logger = logging.getLogger("adaptive_twofactor.totp")

MAX_LABEL_LENGTH = 128


@dataclass(frozen=True)
class Secret:
    """A subject's TOTP secret.

    The key material is excluded from ``repr`` so the entity can be logged
    or put in an exception message without leaking it.
    """

    raw: bytes = field(repr=False)
    base32: str = field(repr=False)
    issuer: str
    account: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ProvisioningDescriptor:
    """Data handed to the subject when setting up an authenticator.

    Attributes:
        secret_base32: Base32 secret (hand to secure storage only).
        otpauth_uri: otpauth:// URI for QR code generation.
        manual_entry_key: Secret grouped by 4 for manual entry.
    """

    secret_base32: str = field(repr=False)
    otpauth_uri: str = field(repr=False)
    manual_entry_key: str = field(repr=False)


def sanitise_label(text: str) -> str:
    """Normalise a label and drop control characters.

    Raises:
        ValueError: If the label is empty or contains a colon, which would
            break the ``issuer:account`` label of the URI.
    """
    text = unicodedata.normalize("NFC", text)
    text = "".join(ch for ch in text if unicodedata.category(ch)[0] != "C")
    text = text[:MAX_LABEL_LENGTH].strip()
    if not text:
        raise ValueError("Label must not be empty")
    if ":" in text:
        raise ValueError("Label must not contain ':'")
    return text


def format_manual_key(secret_base32: str, group: int = 4) -> str:
    """Format a base32 secret in space separated groups."""
    secret_base32 = secret_base32.rstrip("=")
    return " ".join(secret_base32[i : i + group] for i in range(0, len(secret_base32), group))


class SecretProvisioner:
    """Generates TOTP secrets and their provisioning URIs.

    Has no side effects: persisting the secret is the caller's job.

    Example:
        ```python
        provisioner = SecretProvisioner(TotpConfig(issuer="Marketplace"))
        descriptor = provisioner.provision("alice@example.com", "Marketplace")
        render_qr(descriptor.otpauth_uri)
        ```
    """

    def __init__(self, config: TotpConfig | None = None, *, clock: IClock | None = None) -> None:
        self.config = config or TotpConfig()
        self.clock = clock or SystemClock()

    def _random_bytes(self) -> bytes:
        try:
            return secrets.token_bytes(self.config.secret_bytes)
        except (OSError, NotImplementedError) as exc:
            logger.critical("Entropy source failed while generating a TOTP secret")
            raise GenerationError("Failed to generate TOTP secret") from exc

    def create_secret(self, account_label: str, issuer_label: str | None = None) -> Secret:
        """Draw a new secret for ``account_label``.

        Raises:
            GenerationError: If the entropy source is exhausted.
            ValueError: If a label is empty or contains ':'.
        """
        account = sanitise_label(account_label)
        issuer = sanitise_label(issuer_label or self.config.issuer)
        raw = self._random_bytes()
        encoded = base64.b32encode(raw).decode("ascii").rstrip("=")
        return Secret(
            raw=raw,
            base32=encoded,
            issuer=issuer,
            account=account,
            created_at=self.clock.now(),
        )

    def build_uri(self, secret: Secret) -> str:
        """Build the otpauth:// URI for ``secret``."""
        totp = pyotp.TOTP(
            secret.base32,
            digits=self.config.digits,
            interval=self.config.interval,
        )
        return totp.provisioning_uri(name=secret.account, issuer_name=secret.issuer)

    def describe(self, secret: Secret) -> ProvisioningDescriptor:
        """Derive the provisioning descriptor for an existing secret."""
        return ProvisioningDescriptor(
            secret_base32=secret.base32,
            otpauth_uri=self.build_uri(secret),
            manual_entry_key=format_manual_key(secret.base32),
        )

    def provision(self, account_label: str, issuer_label: str | None = None) -> ProvisioningDescriptor:
        """Generate a new secret and return its provisioning descriptor."""
        return self.describe(self.create_secret(account_label, issuer_label))


__all__: list[str] = [
    "Secret",
    "ProvisioningDescriptor",
    "SecretProvisioner",
    "sanitise_label",
    "format_manual_key",
]
