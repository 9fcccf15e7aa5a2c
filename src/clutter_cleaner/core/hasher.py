"""Content digests for fetched asset bytes."""

import hashlib


class Hasher:
    """Computes a SHA-256 digest over the exact fetched bytes of an asset."""

    algorithm = "sha256"

    def digest(self, data: bytes) -> str:
        """
        Hash a byte buffer.

        Args:
            data: Raw fetched bytes (may be empty)

        Returns:
            Lowercase hexadecimal digest (64 characters)
        """
        return hashlib.sha256(data).hexdigest()
