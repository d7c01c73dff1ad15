"""JSON value codec used by every driver.

Values are stored as canonical JSON (sorted keys) and decoded on every
read, so no caller ever holds a reference into stored state.
"""

from typing import Any

import msgspec

from .errors import CodecError

_encoder = msgspec.json.Encoder(order="sorted")
_decoder = msgspec.json.Decoder()


def encode(value: Any) -> bytes:
    """Encode a value to canonical JSON bytes."""
    try:
        return _encoder.encode(value)
    except (TypeError, ValueError, msgspec.EncodeError) as e:
        raise CodecError("Cannot encode value", e) from e


def decode(data: bytes | str) -> Any:
    """Decode JSON bytes or text produced by `encode`."""
    try:
        return _decoder.decode(data)
    except msgspec.DecodeError as e:
        raise CodecError("Cannot decode stored value", e) from e


def encode_text(value: Any) -> str:
    """Encode a value to canonical JSON text."""
    return encode(value).decode("utf-8")


def clone(value: Any) -> Any:
    """Deep-copy a value through the codec.

    The copy only contains JSON types: tuples come back as lists and
    mapping keys as strings.
    """
    return decode(encode(value))
