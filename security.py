from typing import Optional

from passlib.context import CryptContext


class PasswordHasher:
    """Salted bcrypt hashing; ``rounds`` is the bcrypt cost factor."""

    def __init__(self, rounds: int = 12):
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__default_rounds=rounds)

    def hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify(self, password: str, hashed: Optional[str]) -> bool:
        # Social accounts have no stored hash and can never match.
        if not hashed:
            return False
        return self.pwd_context.verify(password, hashed)
