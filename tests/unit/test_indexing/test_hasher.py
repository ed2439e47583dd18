"""Tests for content hasher."""

import hashlib
from pathlib import Path

import pytest

from folder_search.core.exceptions import UnsupportedAlgorithmError
from folder_search.indexing.hasher import ContentHasher, HashAlgorithm


class TestHashAlgorithm:
    """Tests for HashAlgorithm."""

    def test_values_are_option_names(self) -> None:
        """Test enum values are the names stored in configurations."""
        assert [a.value for a in HashAlgorithm] == ["SHA-256", "SHA-1", "MD5", "BLAKE2b"]

    def test_new_creates_digest(self) -> None:
        """Test every algorithm yields a working digest."""
        for algorithm in HashAlgorithm:
            digest = algorithm.new()
            digest.update(b"x")
            assert digest.hexdigest()

    def test_new_unavailable_algorithm(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test an algorithm missing from hashlib raises UnsupportedAlgorithmError."""

        def fail(name: str) -> None:
            raise ValueError(f"unsupported hash type {name}")

        monkeypatch.setattr(hashlib, "new", fail)
        with pytest.raises(UnsupportedAlgorithmError) as exc_info:
            HashAlgorithm.MD5.new()
        assert exc_info.value.details["algorithm"] == "MD5"


class TestContentHasher:
    """Tests for ContentHasher."""

    @pytest.fixture
    def hasher(self) -> ContentHasher:
        """Create content hasher."""
        return ContentHasher()

    def test_hash_file_matches_hashlib(self, hasher: ContentHasher, tmp_path: Path) -> None:
        """Test file digest equals the digest of the full byte stream."""
        data = bytes(range(256)) * 100  # spans several buffer fills
        path = tmp_path / "data.bin"
        path.write_bytes(data)

        assert hasher.hash_file(path) == hashlib.sha256(data).hexdigest()

    def test_hash_file_small_block_size(self, tmp_path: Path) -> None:
        """Test digest does not depend on the block size."""
        data = b"0123456789" * 1000
        path = tmp_path / "data.bin"
        path.write_bytes(data)

        small = ContentHasher(HashAlgorithm.SHA1, block_size=7)
        assert small.hash_file(path) == hashlib.sha1(data).hexdigest()

    def test_hash_empty_file(self, hasher: ContentHasher, tmp_path: Path) -> None:
        """Test hashing an empty file."""
        path = tmp_path / "empty"
        path.write_bytes(b"")
        assert hasher.hash_file(path) == hashlib.sha256(b"").hexdigest()

    def test_hash_file_reused_between_files(self, hasher: ContentHasher, tmp_path: Path) -> None:
        """Test a hasher can be reused for many files."""
        first = tmp_path / "first"
        second = tmp_path / "second"
        first.write_bytes(b"long content " * 2000)
        second.write_bytes(b"short")

        hasher.hash_file(first)
        assert hasher.hash_file(second) == hashlib.sha256(b"short").hexdigest()

    def test_hash_file_not_found(self, hasher: ContentHasher) -> None:
        """Test hashing non-existent file."""
        with pytest.raises(FileNotFoundError):
            hasher.hash_file(Path("/nonexistent/file.txt"))

    def test_blake2b(self, tmp_path: Path) -> None:
        """Test BLAKE2b digests."""
        path = tmp_path / "f"
        path.write_bytes(b"payload")
        assert ContentHasher(HashAlgorithm.BLAKE2B).hash_file(path) == hashlib.blake2b(b"payload").hexdigest()
