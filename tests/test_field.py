import pytest

from zkclaim.constant import BN254_SCALAR_FIELD
from zkclaim.errors import InvalidFormat, OutOfRange
from zkclaim.field import (
    field_to_hex,
    generate_random_document_hash,
    hash_to_field,
    hex_to_field,
    to_field,
)


def test_hash_to_field_folds_text():
    assert hash_to_field("") == 0
    assert hash_to_field("a") == 97
    assert hash_to_field("abc") == 96354


def test_hash_to_field_hex_input():
    assert hash_to_field("0x1f") == 31
    assert hash_to_field("0x" + "f" * 64) == int("f" * 64, 16) % BN254_SCALAR_FIELD

    # not valid hex, folded as text instead
    assert hash_to_field("0xzz") == 1549192


@pytest.mark.parametrize(
    "data", ["", "abc", "0x" + "f" * 64, "medical record " * 50, "0xzz"]
)
def test_hash_to_field_is_stable_through_hex(data):
    h = hash_to_field(data)

    assert 0 <= h < BN254_SCALAR_FIELD
    assert hash_to_field("0x" + format(h, "x")) == h
    assert hash_to_field(field_to_hex(h)) == h


def test_hash_to_field_folds_utf16_units():
    # U+1F600 is the surrogate pair D83D DE00
    assert hash_to_field("\U0001F600") == 0xD83D * 31 + 0xDE00 == 1772899
    assert hash_to_field("\u00e9") == 0xE9


def test_hash_to_field_is_reduced():
    long_text = "medical record " * 50
    assert 0 <= hash_to_field(long_text) < BN254_SCALAR_FIELD
    assert hash_to_field(long_text) == hash_to_field(long_text)


def test_hex_to_field():
    assert hex_to_field("ff") == 255
    assert hex_to_field("0xff") == 255
    assert hex_to_field(hex(BN254_SCALAR_FIELD + 5)) == 5

    with pytest.raises(InvalidFormat):
        hex_to_field("0xnothex")

    with pytest.raises(ValueError):
        hex_to_field("")


def test_to_field():
    assert to_field(12) == 12
    assert to_field("12") == 12
    assert to_field(" 0x10 ") == 16
    assert to_field(BN254_SCALAR_FIELD + 1) == 1
    assert to_field(-1) == BN254_SCALAR_FIELD - 1

    for bad in [True, "twelve", 1.5, None]:
        with pytest.raises(InvalidFormat):
            to_field(bad)


def test_to_field_canonical():
    assert to_field(BN254_SCALAR_FIELD - 1, canonical=True) == BN254_SCALAR_FIELD - 1
    assert to_field("0x0", canonical=True) == 0

    for bad in [BN254_SCALAR_FIELD, hex(BN254_SCALAR_FIELD + 5), -1]:
        with pytest.raises(OutOfRange):
            to_field(bad, canonical=True)


def test_field_to_hex():
    assert field_to_hex(0) == "0x" + "0" * 64
    assert field_to_hex(255) == "0x" + "0" * 62 + "ff"
    assert len(field_to_hex(BN254_SCALAR_FIELD - 1)) == 66
    assert hex_to_field(field_to_hex(123456789)) == 123456789


def test_random_document_hash():
    h1 = generate_random_document_hash()
    h2 = generate_random_document_hash()

    assert h1.startswith("0x") and len(h1) == 66
    int(h1, 16)
    assert h1 != h2
