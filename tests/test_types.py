import json

import pytest

from bridgekit.rpc.types import BlockNumber, BlockNumberOrHash

HASH_HEX = "0x" + "ab" * 32


@pytest.mark.parametrize(
    "name, expected",
    [("earliest", 0), ("latest", -1), ("pending", -2)],
)
def test_block_number_names(name, expected):
    assert BlockNumber.from_json(json.dumps(name)) == expected
    assert BlockNumber.from_json(name) == expected


@pytest.mark.parametrize(
    "constant, expected",
    [(BlockNumber.PENDING, -2), (BlockNumber.LATEST, -1), (BlockNumber.EARLIEST, 0)],
)
def test_named_constants_survive_selector(constant, expected):
    assert BlockNumberOrHash.with_number(constant).number() == expected


@pytest.mark.parametrize("value", [0, 1, 255, 4096, (1 << 63) - 1])
def test_block_number_hex_round_trip(value):
    assert BlockNumber.from_json(json.dumps(hex(value))) == value
    assert BlockNumber.from_json(hex(value).encode()) == value


def test_block_number_too_large():
    with pytest.raises(ValueError, match="block number larger than int64"):
        BlockNumber.from_json(json.dumps(hex(1 << 63)))


@pytest.mark.parametrize("raw", ['"10"', "16", '"0x"', '"0x01"', '"0xzz"', '""', '"0x1_0"'])
def test_block_number_invalid(raw):
    with pytest.raises(ValueError):
        BlockNumber.from_json(raw)


def test_block_number_beyond_uint64():
    with pytest.raises(ValueError):
        BlockNumber.from_json(json.dumps(hex(1 << 64)))


def test_or_hash_from_object_number():
    selector = BlockNumberOrHash.from_json('{"blockNumber": "0x10"}')
    assert selector.number() == BlockNumber.from_json('"0x10"')
    assert selector.hash() is None
    assert selector.require_canonical is False


def test_or_hash_from_object_hash():
    selector = BlockNumberOrHash.from_json(
        json.dumps({"blockHash": HASH_HEX, "requireCanonical": True})
    )
    assert selector.hash() == bytes.fromhex("ab" * 32)
    assert selector.number() is None
    assert selector.require_canonical is True


def test_or_hash_both_is_error():
    with pytest.raises(ValueError, match="cannot specify both"):
        BlockNumberOrHash.from_json(json.dumps({"blockNumber": "0x1", "blockHash": HASH_HEX}))


def test_or_hash_null_is_empty():
    selector = BlockNumberOrHash.from_json("null")
    assert selector == BlockNumberOrHash()
    assert selector.number() is None


@pytest.mark.parametrize("name, expected", [("latest", -1), ("pending", -2), ("earliest", 0)])
def test_or_hash_named_string(name, expected):
    assert BlockNumberOrHash.from_json(json.dumps(name)).number() == expected


def test_or_hash_hash_string():
    selector = BlockNumberOrHash.from_json(json.dumps(HASH_HEX))
    assert selector.hash() == bytes.fromhex(HASH_HEX[2:])


def test_or_hash_hash_string_without_prefix():
    with pytest.raises(ValueError):
        BlockNumberOrHash.from_json(json.dumps("ab" * 33))


def test_or_hash_hex_number_string():
    assert BlockNumberOrHash.from_json(json.dumps(hex(300))).number() == 300


def test_or_hash_number_too_high():
    with pytest.raises(ValueError, match="blocknumber too high"):
        BlockNumberOrHash.from_json(json.dumps(hex(1 << 63)))


@pytest.mark.parametrize("raw", ["5", "[1]", "not json", '{"requireCanonical": 1}'])
def test_or_hash_invalid(raw):
    with pytest.raises(ValueError):
        BlockNumberOrHash.from_json(raw)


def test_with_number():
    selector = BlockNumberOrHash.with_number(BlockNumber.LATEST)
    assert selector.number() == BlockNumber.LATEST
    assert selector.hash() is None
    assert selector.require_canonical is False


def test_with_hash():
    digest = bytes(range(32))
    selector = BlockNumberOrHash.with_hash(digest, True)
    assert selector.hash() == digest
    assert selector.number() is None
    assert selector.require_canonical is True


def test_with_hash_wrong_length():
    with pytest.raises(ValueError):
        BlockNumberOrHash.with_hash(b"\x01\x02")