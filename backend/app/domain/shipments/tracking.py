"""
Tracking number generation.

Format: <prefix><epoch milliseconds><random suffix>, e.g. BX1760874213456K3Q9ZD.
No coordination between workers; uniqueness is enforced by the
tracking_number unique constraint and the caller retries on collision.
"""

import secrets
import string
import time

from backend.app.core.config import settings

SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


class TrackingNumberGenerator:

    def __init__(self, prefix: str = None, suffix_length: int = None):
        self.prefix = (prefix if prefix is not None else settings.tracking_prefix).upper()
        self.suffix_length = suffix_length if suffix_length is not None else settings.tracking_suffix_length
        if self.suffix_length < 1:
            raise ValueError("suffix_length must be at least 1")

    def generate(self) -> str:
        timestamp = int(time.time() * 1000)
        suffix = "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(self.suffix_length))
        return f"{self.prefix}{timestamp}{suffix}"
