"""Cryptographically secure random strings from named alphabets.

Used to mint 32-character session and verification tokens:

    random_string(32, "a-z", "A-Z", "0-9")
"""

import secrets

ALPHABETS: dict[str, str] = {
    "a-z": "abcdefghijklmnopqrstuvwxyz",
    "A-Z": "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
    "0-9": "0123456789",
    "-_": "-_",
}


def random_string(length: int = 32, *alphabets: str) -> str:
    """Draw `length` characters uniformly from the requested alphabets.

    All four alphabets are used when none are named. A non-positive length
    or an unknown alphabet key is a programming error and raises ValueError.
    """
    if length <= 0:
        raise ValueError("Length must be positive.")

    unknown = [a for a in alphabets if a not in ALPHABETS]
    if unknown:
        raise ValueError(f"Unknown alphabet: {', '.join(unknown)}")

    keys = alphabets or tuple(ALPHABETS)
    # dict.fromkeys de-duplicates repeated keys while keeping order
    charset = "".join(ALPHABETS[k] for k in dict.fromkeys(keys))
    return "".join(secrets.choice(charset) for _ in range(length))
