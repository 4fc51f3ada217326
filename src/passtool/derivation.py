"""Deterministic passphrase-to-password derivation.

Compatible with the PassTool shell generator::

    printf '%s' "$passphrase" | sha256sum | xxd -r -p | base64 | cut -c1-$length

The output must stay byte-identical across versions: the same passphrase and
length always give the same password, on every platform.
"""

import base64
import hashlib

from .models import DEFAULT_SPECIAL_CHARS, CredentialProfile

# Base64 of a SHA-256 digest, padding included.
DIGEST_B64_LENGTH = 44

REFERENCE_PASSPHRASE = "test"
REFERENCE_OUTPUT = "n4bQgYhMfWWaL+qgxVrQFaO/TxsrC4Is0V1sFbDwCgg="


def digest_b64(passphrase: str) -> str:
    """Standard base64 (with padding) of SHA-256 over the UTF-8 passphrase."""
    digest = hashlib.sha256(passphrase.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def derive(
    passphrase: str,
    length: int,
    use_special_chars: bool = True,
    special_chars: str = DEFAULT_SPECIAL_CHARS,
) -> str:
    """Derive a password of ``length`` characters from ``passphrase``.

    The special-character options are accepted for interface symmetry with the
    random generator and have no effect on the result.

    Raises:
        ValueError: If length is not positive.
    """
    if length < 1:
        raise ValueError("Password length must be at least 1.")

    encoded = digest_b64(passphrase)
    if length <= len(encoded):
        return encoded[:length]

    repeats = length // len(encoded) + 1
    return (encoded * repeats)[:length]


def derive_for_profile(profile: CredentialProfile, passphrase: str) -> str:
    """Derive the password for a profile, rejecting a blank passphrase."""
    if not passphrase or not passphrase.strip():
        raise ValueError("Passphrase cannot be blank.")

    return derive(
        passphrase,
        profile.password_length,
        use_special_chars=profile.use_special_chars,
        special_chars=profile.special_chars,
    )


def check_compatibility() -> bool:
    """Check the derivation against the shell generator's reference output."""
    return (
        derive(REFERENCE_PASSPHRASE, DIGEST_B64_LENGTH) == REFERENCE_OUTPUT
    )
