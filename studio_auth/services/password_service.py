from passlib.context import CryptContext


class PasswordHasher:
    """Salted bcrypt hashing; the salt lives inside the hash string."""

    def __init__(self, rounds: int = 10):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, plaintext: str) -> str:
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, password_hash: str) -> bool:
        return self._context.verify(plaintext, password_hash)
