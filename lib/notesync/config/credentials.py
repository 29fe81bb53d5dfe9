"""
Credentials Management
======================
Decrypts encrypted auth fields and masks secrets for logging.

Auth maps coming from the settings store may carry Fernet-encrypted values
under a ``<field>_encrypted`` key. They are decrypted with the key found in
the NOTESYNC_ENCRYPTION_KEY environment variable before a provider sees them.
"""

import os
from typing import Dict, Any, Optional
from cryptography.fernet import Fernet

from .constants import ENCRYPTION_KEY_ENV_VAR

ENCRYPTED_SUFFIX = "_encrypted"

SENSITIVE_FIELDS = (
    'password', 'accessToken', 'refreshToken', 'clientSecret',
    'access_token', 'refresh_token', 'client_secret', 'token',
)


def get_encryption_key() -> Optional[str]:
    """Get the auth-field encryption key from the environment, if configured."""
    return os.getenv(ENCRYPTION_KEY_ENV_VAR) or None


def decrypt_credential(encrypted_value: str, encryption_key: str) -> str:
    """
    Decrypt one Fernet token back to its plain value.

    Raises:
        ValueError: On a malformed key or a token that does not verify
    """
    try:
        return Fernet(encryption_key.encode()).decrypt(encrypted_value.encode()).decode()
    except Exception as e:
        raise ValueError(f"Failed to decrypt credential: {e}") from e


def decrypt_auth(auth: Dict[str, Any], encryption_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Decrypt every ``*_encrypted`` field of an auth map.

    Plain fields pass through unchanged. Encrypted fields are replaced by
    their decrypted counterpart (``password_encrypted`` -> ``password``).

    Args:
        auth: Auth map from a SyncConfig
        encryption_key: Fernet key; read from the environment when None

    Returns:
        New auth map with decrypted values

    Raises:
        ValueError: If an encrypted field is present but no key is
            configured, or a field fails to decrypt
    """
    encrypted_fields = [
        key for key, value in auth.items()
        if key.endswith(ENCRYPTED_SUFFIX) and value
    ]
    if not encrypted_fields:
        return dict(auth)

    key = encryption_key or get_encryption_key()
    if not key:
        raise ValueError(
            f"Encrypted auth fields present but {ENCRYPTION_KEY_ENV_VAR} is not set"
        )

    decrypted = dict(auth)
    for field in encrypted_fields:
        plain_field = field[:-len(ENCRYPTED_SUFFIX)]
        try:
            decrypted[plain_field] = decrypt_credential(auth[field], key)
        except ValueError as e:
            raise ValueError(f"Failed to decrypt {field}: {e}") from e
        del decrypted[field]

    return decrypted


def mask_credentials(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy an auth map with secrets hidden, recursing into nested maps.

    Long secrets keep their first and last four characters; short ones and
    every ``*_encrypted`` value become ``***``.
    """
    if not isinstance(data, dict):
        return data

    masked = data.copy()

    for field, value in data.items():
        if field.endswith(ENCRYPTED_SUFFIX) and value:
            masked[field] = "***"
        elif field in SENSITIVE_FIELDS and value:
            if isinstance(value, str) and len(value) > 8:
                masked[field] = f"{value[:4]}...{value[-4:]}"
            else:
                masked[field] = "***"
        elif isinstance(value, dict):
            masked[field] = mask_credentials(value)

    return masked
