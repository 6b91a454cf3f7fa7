"""
Code generation: human-facing user codes and opaque high-entropy values.
"""
import secrets

from connect_server.config import USER_CODE_LENGTH, USER_CODE_PREFIX

# No 0/O, 1/I/L: users type these codes by hand
USER_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"


def new_user_code(prefix: str = USER_CODE_PREFIX, length: int = USER_CODE_LENGTH) -> str:
    """Short code like LINK-7QX4. Not unique by construction; the store detects live collisions."""
    body = "".join(secrets.choice(USER_CODE_ALPHABET) for _ in range(length))
    return f"{prefix}-{body}"


def new_opaque_token(nbytes: int = 32) -> str:
    """Hex string from the OS CSPRNG. Auth codes, device codes, access/refresh tokens, client secrets."""
    return secrets.token_hex(nbytes)


def preview(value: str | None, length: int = 8) -> str:
    """Prefix of a secret value, safe for log lines."""
    if not value:
        return "None"
    return value[:length] + "..."
