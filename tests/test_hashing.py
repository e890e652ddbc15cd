"""
Tests for content hashing and the chunk/index codec.
"""

from __future__ import annotations

import hashlib

import pytest

from kvfs.chunking import decode_index, encode_index, reassemble, split
from kvfs.exceptions import ParseError
from kvfs.hashing import content_hash, decode_hash, encode_hash, hash_key
from kvfs.types import HASH_WIDTH


class TestContentHash:
    """Test the content address function."""

    def test_hash_is_deterministic(self) -> None:
        """Test that identical content always maps to the same hash."""
        data = b"the same chunk" * 100
        assert content_hash(data) == content_hash(bytes(data))

    def test_hash_is_shake256_truncated_to_signed_le(self) -> None:
        """Test the exact construction: SHAKE-256, 8 bytes, signed little-endian."""
        data = b"chunk payload"
        expected = int.from_bytes(
            hashlib.shake_256(data).digest(8), "little", signed=True
        )
        assert content_hash(data) == expected

    def test_hash_fits_signed_64_bits(self) -> None:
        """Test that hashes are in the signed 64-bit range."""
        for i in range(64):
            h = content_hash(bytes([i]) * i)
            assert -(2**63) <= h < 2**63

    def test_different_content_different_hash(self) -> None:
        """Test that distinct chunks get distinct addresses."""
        assert content_hash(b"a") != content_hash(b"b")

    def test_hash_key_hashes_utf8(self) -> None:
        """Test that cache keys are hashed from their UTF-8 bytes."""
        assert hash_key("blob.bin:index") == content_hash(b"blob.bin:index")


class TestHashCodec:
    """Test 8-byte hash encoding."""

    @pytest.mark.parametrize("value", [0, 1, -1, 2**63 - 1, -(2**63)])
    def test_encode_decode(self, value: int) -> None:
        """Test that boundary values survive encoding."""
        encoded = encode_hash(value)
        assert len(encoded) == HASH_WIDTH
        assert decode_hash(encoded) == value

    def test_encoding_is_little_endian(self) -> None:
        """Test the byte order of the encoding."""
        assert encode_hash(1) == b"\x01" + b"\x00" * 7
        assert encode_hash(-1) == b"\xff" * 8

    def test_decode_rejects_wrong_width(self) -> None:
        """Test that only 8-byte values decode."""
        with pytest.raises(ValueError):
            decode_hash(b"\x00" * 7)


class TestSplit:
    """Test blob chunking."""

    def test_empty_blob_has_no_chunks(self) -> None:
        """Test that an empty blob splits into zero chunks and reassembles."""
        assert split(b"", 4) == []
        assert reassemble(split(b"", 4)) == b""

    def test_smaller_than_chunk(self) -> None:
        """Test a blob shorter than one chunk."""
        assert split(b"abc", 4) == [b"abc"]

    def test_exact_multiple(self) -> None:
        """Test a blob that is an exact multiple of the chunk size."""
        assert split(b"abcdefgh", 4) == [b"abcd", b"efgh"]

    def test_short_final_chunk(self) -> None:
        """Test that only the last chunk may be short."""
        chunks = split(b"abcdefghij", 4)
        assert chunks == [b"abcd", b"efgh", b"ij"]
        assert reassemble(chunks) == b"abcdefghij"

    def test_rejects_non_positive_chunk_size(self) -> None:
        """Test that chunk size must be positive."""
        with pytest.raises(ValueError):
            split(b"abc", 0)


class TestIndexCodec:
    """Test index serialization."""

    def test_index_is_concatenated_hashes(self) -> None:
        """Test the index wire format."""
        hashes = [5, -7, 2**62]
        index = encode_index(hashes)
        assert len(index) == 3 * HASH_WIDTH
        assert index[:8] == encode_hash(5)
        assert decode_index(index) == hashes

    def test_empty_index(self) -> None:
        """Test that an empty blob has an empty index."""
        assert encode_index([]) == b""
        assert decode_index(b"") == []

    @pytest.mark.parametrize("length", [1, 7, 9, 15])
    def test_malformed_index_raises_parse_error(self, length: int) -> None:
        """Test that lengths not divisible by 8 are rejected."""
        with pytest.raises(ParseError) as exc_info:
            decode_index(b"\x00" * length)

        assert exc_info.value.context["length"] == length
