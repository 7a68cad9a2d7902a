"""One-time login codes."""
import secrets
import string

CODE_LENGTH = 6

CODE_CHARACTERS = string.digits + string.ascii_uppercase


def generate_verification_code(length: int = CODE_LENGTH) -> str:
    """Random base36 code (36^6 possible values by default)."""
    return "".join(secrets.choice(CODE_CHARACTERS) for _ in range(length))
