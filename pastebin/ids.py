"""
Paste ID and deletion key generation.
"""
import secrets
import string

BASE62_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase
ID_LENGTH = 24
KEY_LENGTH = 16

_ALPHABET_SET = frozenset(BASE62_ALPHABET)


def _random_token(length: int) -> str:
    return "".join(secrets.choice(BASE62_ALPHABET) for _ in range(length))


def generate_id() -> str:
    """Generate a _probably_ unique paste ID."""
    return _random_token(ID_LENGTH)


def generate_key() -> str:
    """Generate a deletion key for a new paste."""
    return _random_token(KEY_LENGTH)


def is_valid_id(value) -> bool:
    """Return True if value has the exact length and alphabet of a paste ID."""
    return (
        isinstance(value, str)
        and len(value) == ID_LENGTH
        and all(c in _ALPHABET_SET for c in value)
    )
