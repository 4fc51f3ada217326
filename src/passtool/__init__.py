"""PassTool credential engine."""

# Version constants (must be defined before imports to avoid circular dependencies)
__version__ = "0.1.0"
SCHEMA_VERSION = 1

# ruff: noqa: E402
from .config import config
from .crypto import DecryptionError, SecretCipher
from .derivation import check_compatibility, derive
from .gate import AuthenticationFailed, GateState, MasterSecretGate
from .models import (
    AutofillFieldDescriptor,
    CredentialProfile,
    FieldKind,
    MasterSecretRecord,
    StoredSecret,
)
from .passwordgen import InvalidPolicy, PasswordStrength, generate_password, score_password

__all__ = [
    "AuthenticationFailed",
    "AutofillFieldDescriptor",
    "CredentialProfile",
    "DecryptionError",
    "FieldKind",
    "GateState",
    "InvalidPolicy",
    "MasterSecretGate",
    "MasterSecretRecord",
    "PasswordStrength",
    "SecretCipher",
    "StoredSecret",
    "check_compatibility",
    "config",
    "derive",
    "generate_password",
    "score_password",
]
