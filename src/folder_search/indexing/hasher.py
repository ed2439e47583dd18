"""Content hashing for change detection.

One ``ContentHasher`` is built per build run. It keeps a single prototype
digest and a single read buffer, so hashing thousands of files allocates
neither a new hash object from scratch nor a new buffer per file.
"""

import hashlib
from enum import Enum
from pathlib import Path
from typing import Any

from folder_search.core.exceptions import UnsupportedAlgorithmError
from folder_search.utils.logging import get_logger

logger = get_logger(__name__)


class HashAlgorithm(str, Enum):
    """Digest algorithms selectable by the ``hash.algorithm`` property."""

    SHA256 = "SHA-256"
    SHA1 = "SHA-1"
    MD5 = "MD5"
    BLAKE2B = "BLAKE2b"

    @property
    def hashlib_name(self) -> str:
        return _HASHLIB_NAMES[self]

    def new(self) -> Any:
        """Create a fresh digest object.

        Raises:
            UnsupportedAlgorithmError: If the interpreter lacks the algorithm.
        """
        try:
            return hashlib.new(self.hashlib_name)
        except ValueError as e:
            raise UnsupportedAlgorithmError(self.value, cause=e) from e


_HASHLIB_NAMES = {
    HashAlgorithm.SHA256: "sha256",
    HashAlgorithm.SHA1: "sha1",
    HashAlgorithm.MD5: "md5",
    HashAlgorithm.BLAKE2B: "blake2b",
}


class ContentHasher:
    """Computes content digests for files.

    Not thread-safe: the read buffer is shared between calls.
    """

    DEFAULT_BLOCK_SIZE = 8192

    def __init__(
        self,
        algorithm: HashAlgorithm = HashAlgorithm.SHA256,
        block_size: int = DEFAULT_BLOCK_SIZE,
    ) -> None:
        """Initialize hasher.

        Args:
            algorithm: Digest algorithm.
            block_size: Size of the reusable read buffer in bytes.

        Raises:
            UnsupportedAlgorithmError: If the algorithm is unavailable.
        """
        self.algorithm = algorithm
        self._prototype = algorithm.new()
        self._buffer = bytearray(block_size)
        self._view = memoryview(self._buffer)

    def hash_file(self, file_path: Path) -> str:
        """Hash a file's full byte stream in fixed-size blocks.

        Args:
            file_path: Path to file.

        Returns:
            Lowercase hex digest.

        Raises:
            OSError: If the file cannot be read.
        """
        digest = self._prototype.copy()
        view = self._view
        with open(file_path, "rb", buffering=0) as f:
            while n := f.readinto(self._buffer):
                digest.update(view[:n])
        return digest.hexdigest()
