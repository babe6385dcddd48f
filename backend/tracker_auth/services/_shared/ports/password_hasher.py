from __future__ import annotations

from typing import Protocol


class PasswordHasher(Protocol):
    """
    Port for one-way credential hashing.

    Implementations embed a per-call random salt (and the algorithm
    parameters) in the returned string, so ``hash`` never returns the same
    value twice for the same input.
    """

    def hash(self, plaintext: str) -> str:
        """Return an opaque, self-describing hash of ``plaintext``."""
        ...

    def verify(self, plaintext: str, hashed: str) -> bool:
        """
        Check ``plaintext`` against ``hashed``.

        :returns: ``False`` (never raises) on mismatch or malformed ``hashed``.
        """
        ...
