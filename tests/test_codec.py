"""Tests for the JSON value codec."""

import pytest

from databank.codec import clone, decode, encode, encode_text
from databank.errors import CodecError


class TestEncode:
    """Encoding produces canonical JSON."""

    def test_keys_sorted(self):
        assert encode({"b": 1, "a": {"d": 2, "c": 3}}) == b'{"a":{"c":3,"d":2},"b":1}'

    def test_equal_values_encode_equal(self):
        assert encode({"x": 1, "y": 2}) == encode({"y": 2, "x": 1})

    def test_unicode(self):
        assert decode(encode({"s": "αβγδ"})) == {"s": "αβγδ"}

    def test_encode_text(self):
        assert encode_text([1, "two", None, True]) == '[1,"two",null,true]'

    def test_unsupported_type(self):
        with pytest.raises(CodecError) as excinfo:
            encode({"when": object()})

        assert excinfo.value.cause is not None


class TestDecode:
    """Decoding accepts bytes and text."""

    def test_bytes_and_text(self):
        assert decode(b'{"a":1}') == {"a": 1}
        assert decode('{"a":1}') == {"a": 1}

    def test_scalars(self):
        assert decode(b"42") == 42
        assert decode(b"1.5") == 1.5
        assert decode(b'"hi"') == "hi"
        assert decode(b"null") is None

    def test_invalid(self):
        with pytest.raises(CodecError):
            decode(b"{not json")


class TestClone:
    """clone() returns an independent JSON-shaped copy."""

    def test_independent(self):
        original = {"tags": ["a"], "nested": {"n": 1}}
        copy = clone(original)

        copy["tags"].append("b")
        copy["nested"]["n"] = 2

        assert original == {"tags": ["a"], "nested": {"n": 1}}

    def test_tuples_become_lists(self):
        assert clone({"pair": (1, 2)}) == {"pair": [1, 2]}
