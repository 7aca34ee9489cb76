from argon2 import PasswordHasher

passwordHasher = PasswordHasher(encoding="utf-8")


def makePassword(password: str) -> str:
    """
    Hash a plain-text rider password using Argon2.

    The hash is stored in `rider.password` and never leaves the server.
    """
    return passwordHasher.hash(password)
