"""Random value generation for tokens and file names."""

import secrets


def random_string(length: int) -> str:
    """Return ``length`` hex characters drawn from the OS CSPRNG."""
    return secrets.token_hex((length + 1) // 2)[:length]
