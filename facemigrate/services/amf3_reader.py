"""
Minimal AMF3 reader that extracts the 'proto' field of a legacy template.

Only the subset needed to walk to the prototype is decoded. Dates, arrays,
XML, vectors and dictionaries are skipped, but their bodies are consumed so
that the fields after them still line up.
"""
import base64
import binascii
import struct
from typing import Any, Dict, List, NamedTuple

from ..exceptions import MalformedContainer
from ..logging_config import get_logger
from ..models import Prototype

logger = get_logger(__name__)

# Markers
UNDEFINED = 0x00
NULL = 0x01
FALSE = 0x02
TRUE = 0x03
INTEGER = 0x04
DOUBLE = 0x05
STRING = 0x06
XML_DOC = 0x07
DATE = 0x08
ARRAY = 0x09
OBJECT = 0x0A
XML = 0x0B
BYTE_ARRAY = 0x0C
VECTOR_INT = 0x0D
VECTOR_UINT = 0x0E
VECTOR_DOUBLE = 0x0F
VECTOR_OBJECT = 0x10
DICTIONARY = 0x11

# Element width of the numeric vectors
_VECTOR_ITEM_SIZE = {VECTOR_INT: 4, VECTOR_UINT: 4, VECTOR_DOUBLE: 8}

MAX_NESTING = 64


class Traits(NamedTuple):
    class_name: str
    sealed_names: List[str]
    dynamic: bool
    externalizable: bool


def decode_base64(value: str) -> bytes:
    """Strict base64 decode; surrounding whitespace is ignored and padding is optional."""
    value = value.strip()
    try:
        return base64.b64decode(value + "=" * (-len(value) % 4), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedContainer(f"Invalid base64 in 'proto': {e}") from e


class Amf3PrototypeReader:
    """
    Single-use reader over one AMF3 buffer.

    Reference tables are scoped to the instance and filled in the order that
    inline values are first seen.
    """

    def __init__(self, buf: bytes):
        self.buf = bytes(buf)
        self.pos = 0
        self.depth = 0
        self.string_refs: List[str] = []
        self.byte_array_refs: List[bytes] = []
        self.trait_refs: List[Traits] = []
        self.object_refs: List[Dict[str, Any]] = []

    def read(self) -> Prototype:
        """Read the root value and return the prototype it carries."""
        marker = self._read_u8()
        if marker == BYTE_ARRAY:
            return Prototype(proto=self._read_byte_array())
        if marker == STRING:
            return Prototype(proto=decode_base64(self._read_string()))
        if marker == OBJECT:
            obj = self._read_object()
            value = obj.get("proto")
            if value is None:
                raise MalformedContainer("AMF3 object missing 'proto'")
            if isinstance(value, bytes):
                return Prototype(proto=value)
            if isinstance(value, str):
                return Prototype(proto=decode_base64(value))
            raise MalformedContainer("'proto' must be a byte array or base64 string")
        raise MalformedContainer(f"Unsupported AMF3 root marker 0x{marker:02x}")

    # ---- Values ----

    def _read_value(self) -> Any:
        marker = self._read_u8()
        if marker in (UNDEFINED, NULL):
            return None
        if marker == FALSE:
            return False
        if marker == TRUE:
            return True
        if marker == INTEGER:
            return self._read_int29()
        if marker == DOUBLE:
            return self._read_double()
        if marker == STRING:
            return self._read_string()
        if marker == BYTE_ARRAY:
            return self._read_byte_array()
        if marker == OBJECT:
            return self._read_object()
        if marker == DATE:
            self._skip_date()
        elif marker == ARRAY:
            self._skip_array()
        elif marker in (XML, XML_DOC):
            self._skip_xml()
        elif marker in _VECTOR_ITEM_SIZE or marker == VECTOR_OBJECT:
            self._skip_vector(marker)
        elif marker == DICTIONARY:
            self._skip_dictionary()
        else:
            raise MalformedContainer(
                f"Unsupported AMF3 marker 0x{marker:02x} at offset {self.pos - 1}"
            )
        return None

    def _read_object(self) -> Dict[str, Any]:
        header = self._read_u29()
        if header & 1 == 0:
            return self._lookup(self.object_refs, header >> 1, "object")

        if header & 2 == 0:
            traits = self._lookup(self.trait_refs, header >> 2, "traits")
        else:
            externalizable = bool(header & 4)
            dynamic = bool(header & 8)
            sealed_count = header >> 4
            class_name = self._read_string()
            if externalizable:
                raise MalformedContainer(
                    f"AMF3 externalizable objects not supported ({class_name or 'anonymous'})"
                )
            sealed_names = [self._read_string() for _ in range(sealed_count)]
            traits = Traits(class_name, sealed_names, dynamic, externalizable)
            self.trait_refs.append(traits)

        obj: Dict[str, Any] = {}
        # Registered before its members so self references resolve
        self.object_refs.append(obj)

        self._enter()
        for name in traits.sealed_names:
            obj[name] = self._read_value()
        if traits.dynamic:
            while True:
                name = self._read_string()
                if not name:
                    break
                obj[name] = self._read_value()
        self.depth -= 1
        return obj

    def _read_string(self) -> str:
        header = self._read_u29()
        if header & 1 == 0:
            return self._lookup(self.string_refs, header >> 1, "string")
        raw = self._read_bytes(header >> 1)
        try:
            value = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedContainer(f"Invalid UTF-8 in AMF3 string: {e}") from e
        # The empty string is interned as well
        self.string_refs.append(value)
        return value

    def _read_byte_array(self) -> bytes:
        header = self._read_u29()
        if header & 1 == 0:
            return self._lookup(self.byte_array_refs, header >> 1, "byte array")
        value = self._read_bytes(header >> 1)
        self.byte_array_refs.append(value)
        return value

    # ---- Skipped types ----

    def _skip_date(self) -> None:
        if self._read_u29() & 1:
            self._skip(8)  # milliseconds as a double

    def _skip_array(self) -> None:
        header = self._read_u29()
        if header & 1 == 0:
            return
        self._enter()
        while self._read_string():
            self._read_value()
        for _ in range(header >> 1):
            self._read_value()
        self.depth -= 1

    def _skip_xml(self) -> None:
        header = self._read_u29()
        if header & 1:
            self._skip(header >> 1)

    def _skip_vector(self, marker: int) -> None:
        header = self._read_u29()
        if header & 1 == 0:
            return
        count = header >> 1
        self._skip(1)  # fixed-length flag
        if marker == VECTOR_OBJECT:
            self._read_string()  # element type name
            self._enter()
            for _ in range(count):
                self._read_value()
            self.depth -= 1
        else:
            self._skip(count * _VECTOR_ITEM_SIZE[marker])

    def _skip_dictionary(self) -> None:
        header = self._read_u29()
        if header & 1 == 0:
            return
        self._skip(1)  # weak-keys flag
        self._enter()
        for _ in range(header >> 1):
            self._read_value()
            self._read_value()
        self.depth -= 1

    # ---- Primitives ----

    def _read_u8(self) -> int:
        if self.pos >= len(self.buf):
            raise MalformedContainer("Unexpected end of AMF3 data")
        value = self.buf[self.pos]
        self.pos += 1
        return value

    def _read_u29(self) -> int:
        """Variable-length unsigned 29-bit integer (1-4 bytes)."""
        value = 0
        for _ in range(3):
            b = self._read_u8()
            if b & 0x80 == 0:
                return value << 7 | b
            value = value << 7 | (b & 0x7F)
        return value << 8 | self._read_u8()

    def _read_int29(self) -> int:
        value = self._read_u29()
        if value & 0x10000000:
            value -= 0x20000000
        return value

    def _read_double(self) -> float:
        return struct.unpack(">d", self._read_bytes(8))[0]

    def _read_bytes(self, n: int) -> bytes:
        if n < 0 or self.pos + n > len(self.buf):
            raise MalformedContainer("Truncated AMF3 data")
        value = self.buf[self.pos:self.pos + n]
        self.pos += n
        return value

    def _skip(self, n: int) -> None:
        if n < 0 or self.pos + n > len(self.buf):
            raise MalformedContainer("Truncated AMF3 data")
        self.pos += n

    def _lookup(self, table: list, index: int, kind: str) -> Any:
        if index >= len(table):
            raise MalformedContainer(f"Bad AMF3 {kind} reference {index}")
        return table[index]

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise MalformedContainer("AMF3 values nested too deeply")


def read_prototype(data: bytes) -> Prototype:
    """Parse an AMF3-encoded legacy template and return its prototype."""
    reader = Amf3PrototypeReader(data)
    prototype = reader.read()
    logger.debug("Read AMF3 prototype of %d bytes (%d of %d consumed)",
                 len(prototype.proto), reader.pos, len(reader.buf))
    return prototype
