"""TOTP (RFC 6238) provisioning and verification.

Works with any TOTP-compatible authenticator app. Uses pyotp internally.
"""

from .provisioner import (
    ProvisioningDescriptor,
    Secret,
    SecretProvisioner,
    format_manual_key,
    sanitise_label,
)
from .verifier import TokenVerifier, decode_secret

__all__: list[str] = [
    "Secret",
    "ProvisioningDescriptor",
    "SecretProvisioner",
    "TokenVerifier",
    "decode_secret",
    "format_manual_key",
    "sanitise_label",
]
