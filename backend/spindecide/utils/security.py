import secrets


# Excludes 0, O, I and 1, which are easy to misread
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6

SESSION_TOKEN_BYTES = 32


def generate_room_code(length: int = ROOM_CODE_LENGTH) -> str:
    """Random room code drawn uniformly from ROOM_CODE_ALPHABET with a CSPRNG."""
    return ''.join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def generate_session_token() -> str:
    """256-bit random token, hex encoded (64 characters)."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)
