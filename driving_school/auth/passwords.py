import logging

from passlib.context import CryptContext

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_BYTES = 72

# Verified against when the email is unknown so both failure paths cost one bcrypt check.
_TIMING_DUMMY_PASSWORD = "timing_attack_prevention_dummy_password"


class PasswordHasher:
    """bcrypt hashing with a configurable work factor (log2 rounds)."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__default_rounds=rounds)
        self._dummy_hash = self.hash(_TIMING_DUMMY_PASSWORD)

    def hash(self, password: str) -> str:
        return str(self._context.hash(password))

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        try:
            return bool(self._context.verify(plain_password, hashed_password))
        except ValueError as exc:
            logger.error("Error verifying password: %s", exc)
            return False

    def burn_verify(self, plain_password: str) -> None:
        """Spend the same effort as a real check against a throwaway hash."""
        self._context.verify(plain_password, self._dummy_hash)
