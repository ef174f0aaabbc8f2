"""Peel compression and wrapper containers off a legacy template blob."""
import json
import zlib
from typing import Optional

from ..config import get_settings
from ..exceptions import (
    DecompressionFailed,
    EmptyTemplateData,
    MalformedContainer,
    VectorDeserializationFailed,
)
from ..logging_config import get_logger
from ..models import Prototype
from .amf3_reader import decode_base64, read_prototype
from .vector_codec import is_prototype

logger = get_logger(__name__)


def is_zlib_stream(data: bytes) -> bool:
    """Check for a zlib header: deflate method and a valid FCHECK."""
    if len(data) < 2:
        return False
    return (data[0] & 0x0F) == 8 and (data[0] * 256 + data[1]) % 31 == 0


def inflate(data: bytes) -> bytes:
    """Inflate a complete zlib stream, rejecting truncated or padded input."""
    if not data:
        raise EmptyTemplateData()
    decompressor = zlib.decompressobj()
    try:
        out = decompressor.decompress(data) + decompressor.flush()
    except zlib.error as e:
        # Also covers streams that ask for a preset dictionary
        raise DecompressionFailed(f"Face template data decompression failed: {e}") from e
    if not decompressor.eof:
        raise DecompressionFailed("Compressed face template data is truncated")
    if decompressor.unused_data:
        raise DecompressionFailed(
            f"{len(decompressor.unused_data)} bytes follow the compressed stream"
        )
    return out


def _bytes_from_json_array(items: list) -> bytes:
    out = bytearray()
    for item in items:
        if not isinstance(item, int) or isinstance(item, bool):
            raise MalformedContainer(f"Invalid byte value: {item!r}")
        if not 0 <= item <= 255:
            raise MalformedContainer(f"Byte value out of range: {item}")
        out.append(item)
    return bytes(out)


def read_json_prototype(data: bytes) -> Prototype:
    """
    Decode a JSON wrapper.

    Accepted shapes are {"proto": "<base64>"}, {"proto": [0..255, ...]}
    and a bare "<base64>" string.
    """
    try:
        node = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedContainer(f"Invalid JSON template wrapper: {e}") from e

    if isinstance(node, str):
        return Prototype(proto=decode_base64(node))
    if not isinstance(node, dict):
        raise MalformedContainer("Expected JSON string or object")
    if "proto" not in node:
        raise MalformedContainer("Missing 'proto'")

    value = node["proto"]
    if isinstance(value, str):
        return Prototype(proto=decode_base64(value))
    if isinstance(value, list):
        return Prototype(proto=_bytes_from_json_array(value))
    raise MalformedContainer("'proto' must be base64 string or byte array")


def resolve(data: bytes, max_depth: Optional[int] = None) -> Prototype:
    """
    Unwrap zlib, JSON and AMF3 layers until raw prototype bytes remain.

    Args:
        data: Legacy template blob
        max_depth: Maximum number of layers to peel (defaults to settings)

    Returns:
        The innermost prototype
    """
    if max_depth is None:
        max_depth = get_settings().max_unwrap_depth

    current = bytes(data)
    for _ in range(max_depth + 1):
        if not current:
            raise EmptyTemplateData()

        if is_zlib_stream(current):
            logger.debug("Inflating zlib layer of %d bytes", len(current))
            current = inflate(current)
            continue

        if is_prototype(current):
            return Prototype(proto=current)

        lead = current[0]
        if lead in (ord("{"), ord('"')):
            logger.debug("Unwrapping JSON layer of %d bytes", len(current))
            current = read_json_prototype(current).proto
        elif lead < 32:
            logger.debug("Unwrapping AMF3 layer of %d bytes", len(current))
            current = read_prototype(current).proto
        else:
            raise VectorDeserializationFailed(
                f"Unrecognized template data (leading byte 0x{lead:02x})"
            )

    raise MalformedContainer(f"Template nested deeper than {max_depth} containers")
