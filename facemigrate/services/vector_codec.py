"""
Fixed-point vector codec for legacy face template prototypes.

Prototype layout (all multi-byte values little-endian):

    byte 0      version tag (16 or 24, checked by the caller)
    byte 1      element count, or 0 when a uint32 count follows the header
    byte 2      payload type (0x10, 0x11 or 0x12)
    byte 3      vector count, must be 1
    [uint32]    extended element count
    payload     float32 coefficient + encoded magnitudes

The compact form skips the type/count bytes: byte 1 == 1, bytes 2..3 hold a
bfloat16 coefficient and 128 signed bytes follow from offset 4.
"""
from typing import Tuple

import numpy as np

from ..exceptions import EmptyTemplateData, VectorDeserializationFailed
from ..logging_config import get_logger
from ..models import RawFixedPointVector, VectorFormat

logger = get_logger(__name__)

HEADER_SIZE = 4
COMPACT_ELEMENTS = 128
COMPACT_SIZE = HEADER_SIZE + COMPACT_ELEMENTS

TYPE_COMPRESSED_8 = 0x10
TYPE_PACKED_12 = 0x11
TYPE_LINEAR_16 = 0x12

PAYLOAD_TYPES = {
    TYPE_COMPRESSED_8: VectorFormat.COMPRESSED_8,
    TYPE_PACKED_12: VectorFormat.PACKED_12,
    TYPE_LINEAR_16: VectorFormat.LINEAR_16,
}

# 8-bit code -> int16 magnitude for the compressed encoding
DEQUANTIZATION_TABLE = np.array([
    0, 1, 4, 8, 16, 24, 32, 40,
    48, 56, 64, 72, 80, 88, 96, 104,
    113, 122, 131, 140, 149, 158, 167, 176,
    185, 194, 204, 214, 224, 234, 244, 254,
    264, 274, 285, 296, 307, 318, 329, 340,
    352, 364, 376, 388, 400, 413, 426, 439,
    452, 466, 480, 494, 509, 524, 540, 556,
    572, 588, 604, 620, 636, 652, 668, 684,
    700, 716, 732, 748, 764, 780, 796, 812,
    828, 844, 860, 876, 892, 908, 924, 940,
    956, 972, 988, 1004, 1020, 1036, 1052, 1068,
    1084, 1100, 1116, 1132, 1148, 1164, 1180, 1196,
    1212, 1228, 1244, 1260, 1276, 1292, 1308, 1324,
    1340, 1356, 1372, 1388, 1404, 1420, 1436, 1452,
    1468, 1484, 1500, 1516, 1532, 1548, 1564, 1580,
    1596, 1612, 1628, 1644, 1660, 1676, 1692, 1708,
    -1708, -1692, -1676, -1660, -1644, -1628, -1612, -1596,
    -1580, -1564, -1548, -1532, -1516, -1500, -1484, -1468,
    -1452, -1436, -1420, -1404, -1388, -1372, -1356, -1340,
    -1324, -1308, -1292, -1276, -1260, -1244, -1228, -1212,
    -1196, -1180, -1164, -1148, -1132, -1116, -1100, -1084,
    -1068, -1052, -1036, -1020, -1004, -988, -972, -956,
    -940, -924, -908, -892, -876, -860, -844, -828,
    -812, -796, -780, -764, -748, -732, -716, -700,
    -684, -668, -652, -636, -620, -604, -588, -572,
    -556, -540, -524, -509, -494, -480, -466, -452,
    -439, -426, -413, -400, -388, -376, -364, -352,
    -340, -329, -318, -307, -296, -285, -274, -264,
    -254, -244, -234, -224, -214, -204, -194, -185,
    -176, -167, -158, -149, -140, -131, -122, -113,
    -104, -96, -88, -80, -72, -64, -56, -48,
    -40, -32, -24, -16, -8, -4, -1, 0,
], dtype=np.int16)
DEQUANTIZATION_TABLE.setflags(write=False)


def _round_up_4(n: int) -> int:
    return (n + 3) & ~3


def compressed8_size(nels: int) -> int:
    """Declared byte length of an 8-bit compressed payload."""
    return 4 + _round_up_4(nels)


def packed12_size(nels: int) -> int:
    """Declared byte length of a 12-bit packed payload."""
    data_bytes = 3 * (nels // 2) + (2 if nels & 1 else 0)
    return 4 + _round_up_4(data_bytes)


def linear16_size(nels: int) -> int:
    """Declared byte length of a 16-bit linear payload."""
    return 4 + 2 * nels + (2 if nels & 1 else 0)


def is_prototype(data: bytes) -> bool:
    """
    Check whether bytes already look like a raw prototype.

    Either the compact 132-byte form or a general header whose type byte has
    no bits outside 0x13 and whose vector count is at most 2.
    """
    if len(data) < HEADER_SIZE:
        return False
    b0, b1, b2, b3 = data[0], data[1], data[2], data[3]
    if 16 < b0 < 120 and b1 == 1 and len(data) == COMPACT_SIZE:
        return True
    return b0 != 0 and b2 != 0 and b3 != 0 and (b2 & 0xEC) == 0 and b3 <= 2


def version_byte(data: bytes) -> int:
    """Return the version tag of a prototype without decoding it."""
    if not data:
        raise EmptyTemplateData()
    return data[0]


def _float32_le(data: bytes, offset: int) -> float:
    return float(np.frombuffer(data, dtype="<f4", count=1, offset=offset)[0])


def _bfloat16_le(data: bytes, offset: int) -> float:
    upper = int(np.frombuffer(data, dtype="<u2", count=1, offset=offset)[0])
    return float(np.array([upper << 16], dtype=np.uint32).view(np.float32)[0])


def _check_coeff(coeff: float) -> float:
    # Rejects NaN as well as negative values
    if not coeff >= 0.0:
        raise VectorDeserializationFailed(f"Invalid vector coefficient {coeff}")
    return coeff


def decode_compact(data: bytes) -> Tuple[float, np.ndarray]:
    """Decode the 128 x int8 form with a bfloat16 coefficient at bytes 2..3."""
    coeff = _check_coeff(_bfloat16_le(data, 2))
    magnitudes = np.frombuffer(data, dtype=np.int8, count=COMPACT_ELEMENTS, offset=HEADER_SIZE)
    return coeff, magnitudes.astype(np.int16)


def decode_compressed8(blob: bytes, nels: int) -> Tuple[float, np.ndarray]:
    """Decode 8-bit codes through the dequantization table."""
    if len(blob) < 4 + nels:
        raise VectorDeserializationFailed("Truncated 8-bit compressed payload")
    coeff = _check_coeff(_float32_le(blob, 0))
    # Only the first nels code bytes are data; the rest is alignment padding
    codes = np.frombuffer(blob, dtype=np.uint8, count=nels, offset=4)
    return coeff, DEQUANTIZATION_TABLE[codes]


def decode_packed12(blob: bytes, nels: int) -> Tuple[float, np.ndarray]:
    """
    Decode two 12-bit values per 3 bytes.

    For bytes (p0, p1, p2) the first value is p0 | (p1 & 0x0F) << 8 and the
    second is p2 << 4 | p1 >> 4, both sign-extended from 12 bits. An odd
    trailing element occupies 2 bytes and only its low 12 bits count.
    """
    if len(blob) < packed12_size(nels):
        raise VectorDeserializationFailed("Truncated 12-bit packed payload")
    coeff = _check_coeff(_float32_le(blob, 0))

    pairs = nels // 2
    packed = np.frombuffer(blob, dtype=np.uint8, count=3 * pairs, offset=4)
    packed = packed.reshape(pairs, 3).astype(np.uint16)
    first = (packed[:, 1] & 0x0F) << 12 | packed[:, 0] << 4
    second = packed[:, 2] << 8 | packed[:, 1]

    values = np.empty(nels, dtype=np.int16)
    # Arithmetic shift on the int16 view does the sign extension
    values[0:2 * pairs:2] = first.astype(np.uint16).view(np.int16) >> 4
    values[1:2 * pairs:2] = second.astype(np.uint16).view(np.int16) >> 4

    if nels & 1:
        tail = 4 + 3 * pairs
        lo, hi = blob[tail], blob[tail + 1]
        last = np.array([(hi & 0x0F) << 12 | lo << 4], dtype=np.uint16)
        values[-1] = last.view(np.int16)[0] >> 4
    return coeff, values


def decode_linear16(blob: bytes, nels: int) -> Tuple[float, np.ndarray]:
    """Decode little-endian int16 values."""
    if len(blob) < 4 + 2 * nels:
        raise VectorDeserializationFailed("Truncated 16-bit linear payload")
    coeff = _check_coeff(_float32_le(blob, 0))
    values = np.frombuffer(blob, dtype="<i2", count=nels, offset=4)
    return coeff, values.astype(np.int16)


_DECODERS = {
    VectorFormat.COMPRESSED_8: (compressed8_size, decode_compressed8),
    VectorFormat.PACKED_12: (packed12_size, decode_packed12),
    VectorFormat.LINEAR_16: (linear16_size, decode_linear16),
}


def detect_format(data: bytes) -> VectorFormat:
    """Identify the vector encoding from the prototype header."""
    if not data:
        raise EmptyTemplateData()
    if len(data) < HEADER_SIZE:
        raise VectorDeserializationFailed("Prototype shorter than its header")
    if data[1] == 1 and len(data) >= COMPACT_SIZE:
        return VectorFormat.COMPACT_128
    try:
        return PAYLOAD_TYPES[data[2]]
    except KeyError:
        raise VectorDeserializationFailed(f"Unknown vector payload type 0x{data[2]:02x}") from None


def decode(data: bytes) -> RawFixedPointVector:
    """
    Decode prototype bytes into magnitudes plus a scale coefficient.

    Raises:
        EmptyTemplateData: data is empty
        VectorDeserializationFailed: header or payload does not match any encoding
    """
    fmt = detect_format(data)

    if fmt is VectorFormat.COMPACT_128:
        coeff, magnitudes = decode_compact(data)
        logger.debug("Decoded %s vector with %d elements", fmt.value, len(magnitudes))
        return RawFixedPointVector(coeff=coeff, magnitudes=magnitudes, format=fmt)

    if data[3] != 1:
        raise VectorDeserializationFailed(f"Unsupported vector count {data[3]}")

    offset = HEADER_SIZE
    nels = data[1]
    if nels == 0:
        if len(data) < offset + 4:
            raise VectorDeserializationFailed("Missing extended element count")
        nels = int(np.frombuffer(data, dtype="<u4", count=1, offset=offset)[0])
        if nels == 0:
            raise VectorDeserializationFailed("Extended element count is zero")
        offset += 4

    size_of, decoder = _DECODERS[fmt]
    n_bytes = size_of(nels)
    remaining = len(data) - offset
    if remaining < n_bytes:
        raise VectorDeserializationFailed(
            f"Declared {fmt.value} payload of {n_bytes} bytes exceeds {remaining} available"
        )

    coeff, magnitudes = decoder(data[offset:offset + n_bytes], nels)
    assert n_bytes % 4 == 0
    assert magnitudes.shape[0] == nels, "decoded element count differs from header"

    if remaining > n_bytes:
        # Legacy producers sometimes over-allocate
        logger.debug("Ignoring %d trailing bytes after %s payload", remaining - n_bytes, fmt.value)

    logger.debug("Decoded %s vector with %d elements", fmt.value, nels)
    return RawFixedPointVector(coeff=coeff, magnitudes=magnitudes, format=fmt)
