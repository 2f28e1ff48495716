"""
Short code generation strategies.
Uses Strategy Pattern so the code shape can change without touching the
link service's collision handling.
"""

import random
import secrets
import string
from abc import ABC, abstractmethod
from typing import Optional


class ShortCodeStrategy(ABC):
    """Abstract base class for short code generation strategies"""

    @abstractmethod
    def generate(self) -> str:
        """
        Produce one candidate code.

        Uniqueness is not guaranteed here; the link service checks each
        candidate against the directory and retries on collision.
        """
        pass

    @abstractmethod
    def is_valid(self, code: str) -> bool:
        """Check whether `code` has the shape this strategy produces"""
        pass


class RandomShortCodeStrategy(ShortCodeStrategy):
    """
    Fixed-length random codes from the URL-safe alphabet [A-Za-z0-9].

    62^7 ≈ 3.5 trillion codes at the default length, so collisions stay rare
    until the directory is very large. Exhausted retries mean the length
    needs to grow.
    """

    ALPHABET = string.ascii_letters + string.digits

    def __init__(self, length: int = 7, rng: Optional[random.Random] = None):
        if length < 1:
            raise ValueError("Short code length must be positive")
        self.length = length
        self.rng = rng or secrets.SystemRandom()

    def generate(self) -> str:
        return "".join(self.rng.choice(self.ALPHABET) for _ in range(self.length))

    def is_valid(self, code: str) -> bool:
        return len(code) == self.length and all(char in self.ALPHABET for char in code)
