"""Short, human-typable room codes."""

import secrets

ROOM_CODE_LENGTH = 4
# No 0/O or 1/I so codes survive being read aloud or typed from a phone.
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_room_code() -> str:
    """Draw a code uniformly at random. Does not check for collisions."""
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def normalize_room_code(raw: str) -> str:
    return raw.strip().upper()
