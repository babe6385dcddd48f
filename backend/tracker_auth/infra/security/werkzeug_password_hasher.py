# tracker_auth/infra/security/werkzeug_password_hasher.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from werkzeug.security import check_password_hash, generate_password_hash

from tracker_auth.services._shared.ports import PasswordHasher

log = logging.getLogger(__name__)


@dataclass(slots=True)
class WerkzeugPasswordHasher(PasswordHasher):
    """
    Adapter over :mod:`werkzeug.security`.

    ``scrypt`` (the default) is memory-hard; werkzeug embeds the method,
    its parameters and a random salt in every hash, and compares digests in
    constant time.

    :param method: Werkzeug method string, e.g. ``"scrypt"`` or
        ``"pbkdf2:sha256:600000"``.
    :param salt_length: Salt length in characters.
    """

    method: str = "scrypt"
    salt_length: int = 16

    def hash(self, plaintext: str) -> str:
        if not isinstance(plaintext, str) or not plaintext:
            raise ValueError("Password must be a non-empty string.")
        return generate_password_hash(plaintext, method=self.method, salt_length=self.salt_length)

    def verify(self, plaintext: str, hashed: str) -> bool:
        if not plaintext or not hashed:
            return False
        try:
            return bool(check_password_hash(hashed, plaintext))
        except (ValueError, TypeError) as exc:
            # Unknown method or unparsable parameters in the stored hash
            log.warning("password_hash.malformed error=%s", type(exc).__name__)
            return False
