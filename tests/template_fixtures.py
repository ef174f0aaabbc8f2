"""Builders for legacy template blobs used across the tests."""
import base64
import json
import struct
import zlib


def float_bits(value):
    return struct.unpack("<I", struct.pack("<f", value))[0]


def _header(version, nels, type_tag):
    if 0 < nels < 256:
        return bytes([version, nels, type_tag, 1])
    return bytes([version, 0, type_tag, 1]) + struct.pack("<I", nels)


def _pad4(data):
    return data + b"\x00" * (-len(data) % 4)


def linear16(version, values, coeff=0.5):
    """Type 0x12 prototype."""
    payload = struct.pack("<f", coeff) + struct.pack(f"<{len(values)}h", *values)
    if len(values) % 2:
        payload += b"\x00\x00"
    return _header(version, len(values), 0x12) + payload


def compressed8(version, codes, coeff=0.5):
    """Type 0x10 prototype."""
    payload = struct.pack("<f", coeff) + _pad4(bytes(codes))
    return _header(version, len(codes), 0x10) + payload


def pack12(values, tail_padding=0):
    """Pack signed 12-bit values, two per 3 bytes."""
    out = bytearray()
    for i in range(0, len(values) - 1, 2):
        a = values[i] & 0xFFF
        b = values[i + 1] & 0xFFF
        out += bytes([a & 0xFF, (a >> 8) | ((b & 0x0F) << 4), b >> 4])
    if len(values) % 2:
        a = values[-1] & 0xFFF
        out += bytes([a & 0xFF, (a >> 8) | (tail_padding << 4)])
    return bytes(out)


def packed12(version, values, coeff=0.5, tail_padding=0):
    """Type 0x11 prototype."""
    payload = struct.pack("<f", coeff) + _pad4(pack12(values, tail_padding))
    return _header(version, len(values), 0x11) + payload


def compact(version, values, coeff=0.5):
    """128 x int8 prototype with a bfloat16 coefficient."""
    assert len(values) == 128
    bf16 = float_bits(coeff) >> 16
    return bytes([version, 1]) + struct.pack("<H", bf16) + struct.pack("<128b", *values)


def sample_values(n, seed=1):
    """Deterministic signed values within the 12-bit range."""
    return [((i * 37 + seed * 101) % 4000) - 2000 for i in range(n)]


# ---- Wrappers ----

def json_wrap(proto, as_array=False):
    if as_array:
        return json.dumps({"proto": list(proto)}).encode("utf-8")
    return json.dumps({"proto": base64.b64encode(proto).decode("ascii")}).encode("utf-8")


def json_string_wrap(proto):
    return json.dumps(base64.b64encode(proto).decode("ascii")).encode("utf-8")


def compress(data):
    return zlib.compress(data)


# ---- AMF3 ----

def u29(n):
    if n < 0x80:
        return bytes([n])
    if n < 0x4000:
        return bytes([(n >> 7) | 0x80, n & 0x7F])
    if n < 0x200000:
        return bytes([(n >> 14) | 0x80, ((n >> 7) & 0x7F) | 0x80, n & 0x7F])
    return bytes([(n >> 22) | 0x80, ((n >> 15) & 0x7F) | 0x80, ((n >> 8) & 0x7F) | 0x80, n & 0xFF])


def amf_str(s):
    """Inline string body (no marker)."""
    raw = s.encode("utf-8")
    return u29(len(raw) << 1 | 1) + raw


def amf_ref(index):
    """Reference header for strings, byte arrays or objects."""
    return u29(index << 1)


def amf_string_value(s):
    return b"\x06" + amf_str(s)


def amf_bytes(data):
    return b"\x0c" + u29(len(data) << 1 | 1) + data


def amf_int(n):
    return b"\x04" + u29(n & 0x1FFFFFFF)


def amf_double(x):
    return b"\x05" + struct.pack(">d", x)


def amf_dynamic_object(fields, class_name=""):
    """Anonymous dynamic object; fields is a list of (name, encoded value)."""
    out = b"\x0a" + u29(0x0B) + amf_str(class_name)
    for name, value in fields:
        out += amf_str(name) + value
    return out + amf_str("")


def amf_sealed_object(class_name, fields):
    """Sealed, non-dynamic object with the given (name, encoded value) members."""
    out = b"\x0a" + u29(len(fields) << 4 | 0x03) + amf_str(class_name)
    for name, _ in fields:
        out += amf_str(name)
    for _, value in fields:
        out += value
    return out


def amf_wrap(proto):
    """Typical legacy shape: {proto: ByteArray}."""
    return amf_dynamic_object([("proto", amf_bytes(proto))])
