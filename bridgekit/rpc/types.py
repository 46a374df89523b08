"""Block selectors used as JSON-RPC parameters."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, ClassVar

_MAX_INT64 = (1 << 63) - 1
_MAX_UINT64 = (1 << 64) - 1
_HASH_LENGTH = 32
_HEX = re.compile(r"[0-9a-fA-F]+")

_NAMED_BLOCKS = {"earliest": 0, "latest": -1, "pending": -2}


def _has_prefix(text: str) -> bool:
    return text[:2] in ("0x", "0X")


def _decode_uint64(text: str) -> int:
    """Decode a 0x-prefixed hex quantity without leading zeros."""
    if not text:
        raise ValueError("empty hex string")
    if not _has_prefix(text):
        raise ValueError("hex string without 0x prefix")
    digits = text[2:]
    if not digits:
        raise ValueError('hex string "0x"')
    if len(digits) > 1 and digits[0] == "0":
        raise ValueError("hex number with leading zero digits")
    if not _HEX.fullmatch(digits):
        raise ValueError("invalid hex string")
    value = int(digits, 16)
    if value > _MAX_UINT64:
        raise ValueError("hex number > 64 bits")
    return value


def _decode_hash(text: str) -> bytes:
    if not _has_prefix(text):
        raise ValueError("hex string without 0x prefix")
    digits = text[2:]
    if len(digits) % 2:
        raise ValueError("hex string of odd length")
    if len(digits) // 2 != _HASH_LENGTH:
        raise ValueError(f"hex string has length {len(digits)}, want {_HASH_LENGTH * 2} for Hash")
    if digits and not _HEX.fullmatch(digits):
        raise ValueError("invalid hex string")
    return bytes.fromhex(digits)


def _text(data: str | bytes | bytearray) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8")
    return data


class BlockNumber(int):
    """A block height, or one of the named positions PENDING, LATEST and EARLIEST."""

    PENDING: ClassVar[BlockNumber]
    LATEST: ClassVar[BlockNumber]
    EARLIEST: ClassVar[BlockNumber]

    @classmethod
    def from_json(cls, data: str | bytes | bytearray) -> BlockNumber:
        """Parse "latest", "earliest", "pending" or a hex quantity, quoted or not."""
        text = _text(data).strip()
        if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
            text = text[1:-1]
        if text in _NAMED_BLOCKS:
            return cls(_NAMED_BLOCKS[text])
        value = _decode_uint64(text)
        if value > _MAX_INT64:
            raise ValueError("block number larger than int64")
        return cls(value)

    def __repr__(self) -> str:
        return f"BlockNumber({int(self)})"


BlockNumber.PENDING = BlockNumber(-2)
BlockNumber.LATEST = BlockNumber(-1)
BlockNumber.EARLIEST = BlockNumber(0)

PENDING_BLOCK_NUMBER = BlockNumber.PENDING
LATEST_BLOCK_NUMBER = BlockNumber.LATEST
EARLIEST_BLOCK_NUMBER = BlockNumber.EARLIEST


@dataclass(frozen=True)
class BlockNumberOrHash:
    """Selects a block either by number or by its 32-byte hash."""

    block_number: BlockNumber | None = None
    block_hash: bytes | None = None
    require_canonical: bool = False

    @classmethod
    def from_json(cls, data: str | bytes | bytearray) -> BlockNumberOrHash:
        """Parse an object with blockNumber/blockHash, a named block, a hash or a hex number."""
        try:
            value = json.loads(_text(data))
        except ValueError as exc:
            raise ValueError(f"invalid JSON: {exc}") from None
        if value is None:
            return cls()
        if isinstance(value, dict):
            return cls._from_object(value)
        if not isinstance(value, str):
            raise ValueError("block number or hash must be an object or a string")
        return cls._from_string(value)

    @classmethod
    def _from_object(cls, data: dict[str, Any]) -> BlockNumberOrHash:
        number = data.get("blockNumber")
        block_hash = data.get("blockHash")
        canonical = data.get("requireCanonical")
        parsed_number = None if number is None else BlockNumber.from_json(json.dumps(number))
        parsed_hash = None
        if block_hash is not None:
            if not isinstance(block_hash, str):
                raise ValueError("blockHash must be a string")
            parsed_hash = _decode_hash(block_hash)
        if canonical is not None and not isinstance(canonical, bool):
            raise ValueError("requireCanonical must be a boolean")
        if parsed_number is not None and parsed_hash is not None:
            raise ValueError("cannot specify both BlockHash and BlockNumber, choose one or the other")
        return cls(parsed_number, parsed_hash, bool(canonical))

    @classmethod
    def _from_string(cls, text: str) -> BlockNumberOrHash:
        if text in _NAMED_BLOCKS:
            return cls(block_number=BlockNumber(_NAMED_BLOCKS[text]))
        if len(text) == 2 + _HASH_LENGTH * 2:
            return cls(block_hash=_decode_hash(text))
        value = _decode_uint64(text)
        if value > _MAX_INT64:
            raise ValueError("blocknumber too high")
        return cls(block_number=BlockNumber(value))

    def number(self) -> BlockNumber | None:
        return self.block_number

    def hash(self) -> bytes | None:
        return self.block_hash

    @classmethod
    def with_number(cls, block_number: int) -> BlockNumberOrHash:
        return cls(block_number=BlockNumber(block_number))

    @classmethod
    def with_hash(cls, block_hash: bytes, canonical: bool = False) -> BlockNumberOrHash:
        block_hash = bytes(block_hash)
        if len(block_hash) != _HASH_LENGTH:
            raise ValueError(f"block hash must be {_HASH_LENGTH} bytes")
        return cls(block_hash=block_hash, require_canonical=canonical)