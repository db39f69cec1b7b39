"""Binary document column codec.

This module serializes GenericDocument trees into the self-describing
blob stored in the document column. Containers carry their body length
so readers can skip whole subtrees, which lets ``peek_version`` find the
root ``entityVersion`` without building any document nodes.

Layout (big-endian)::

    blob    := b"GD" format:u8 value
    value   := tag:u8 payload
    null    := 0x00
    false   := 0x01
    true    := 0x02
    int64   := 0x03 i64
    bigint  := 0x04 len:u32 ascii-decimal
    float   := 0x05 f64
    string  := 0x06 len:u32 utf8
    array   := 0x07 body_len:u32 count:u32 value*
    map     := 0x08 body_len:u32 count:u32 (key_len:u32 utf8 value)*
"""

from __future__ import annotations

import struct

from core.constants import (
    BLOB_FORMAT_VERSION,
    BLOB_MAGIC,
    ENTITY_VERSION_FIELD,
    INT64_MAX,
    INT64_MIN,
    MAX_DOCUMENT_DEPTH,
)
from core.errors import MalformedDocumentError
from document.generic_document import GenericDocument

_TAG_NULL = 0x00
_TAG_FALSE = 0x01
_TAG_TRUE = 0x02
_TAG_INT = 0x03
_TAG_BIGINT = 0x04
_TAG_FLOAT = 0x05
_TAG_STRING = 0x06
_TAG_ARRAY = 0x07
_TAG_MAP = 0x08

_U32 = struct.Struct(">I")
_I64 = struct.Struct(">q")
_F64 = struct.Struct(">d")
_CONTAINER_HEADER = struct.Struct(">II")
_HEADER = BLOB_MAGIC + bytes([BLOB_FORMAT_VERSION])
_ENTITY_VERSION_KEY = ENTITY_VERSION_FIELD.encode("utf-8")


def encode(document: GenericDocument) -> bytes:
    """Serialize a document into blob bytes.

    Encoding is deterministic and keeps map key order, so re-encoding a
    decoded blob reproduces it byte for byte.

    Args:
        document: Document with an integer root ``entityVersion``.

    Returns:
        Encoded blob.

    Raises:
        MalformedDocumentError: If the root version tag is missing or invalid, or
            containers nest deeper than the supported limit.
    """
    _require_version(document)
    buffer = bytearray(_HEADER)
    _encode_value(document, buffer)
    return bytes(buffer)


def decode(blob: bytes) -> GenericDocument:
    """Parse blob bytes into a document tree.

    Args:
        blob: Encoded blob.

    Returns:
        Decoded document.

    Raises:
        MalformedDocumentError: If bytes are invalid, nest too deeply, or lack a
            version tag.
    """
    reader = _Reader(blob)
    reader.read_header()
    document = _decode_value(reader)
    if reader.offset != len(reader.data):
        raise MalformedDocumentError(
            f"Blob has {len(reader.data) - reader.offset} trailing byte(s) after the root value."
        )
    _require_version(document)
    return document


def peek_version(blob: bytes) -> int:
    """Read only the root ``entityVersion`` tag.

    Sibling fields are skipped by length; no document nodes are built.

    Args:
        blob: Encoded blob.

    Returns:
        Stored entity version.

    Raises:
        MalformedDocumentError: If the tag is missing, not an integer, or the
            bytes are not a valid blob.
    """
    reader = _Reader(blob)
    reader.read_header()
    tag = reader.read_tag()
    if tag != _TAG_MAP:
        raise MalformedDocumentError(
            f"Blob root must be a map carrying '{ENTITY_VERSION_FIELD}'."
        )
    body_length, count = reader.read_container_header()
    body_end = reader.offset + body_length
    for _ in range(count):
        key = reader.read_bytes(reader.read_u32())
        if key != _ENTITY_VERSION_KEY:
            _skip_value(reader)
            continue
        value_tag = reader.read_tag()
        if value_tag == _TAG_INT:
            return reader.read_i64()
        if value_tag == _TAG_BIGINT:
            return _parse_bigint(reader.read_bytes(reader.read_u32()))
        raise MalformedDocumentError(
            f"Blob '{ENTITY_VERSION_FIELD}' must be an integer, found tag 0x{value_tag:02x}."
        )
    if reader.offset != body_end:
        raise MalformedDocumentError("Blob root map length does not match its entries.")
    raise MalformedDocumentError(
        f"Blob is missing the '{ENTITY_VERSION_FIELD}' field at its root."
    )


def _require_version(document: GenericDocument) -> int:
    return document.entity_version


def _encode_value(node: GenericDocument, buffer: bytearray, depth: int = 0) -> None:
    if node.kind == "null":
        buffer.append(_TAG_NULL)
    elif node.kind == "bool":
        buffer.append(_TAG_TRUE if node.value else _TAG_FALSE)
    elif node.kind == "number":
        _encode_number(node.value, buffer)  # type: ignore[arg-type]
    elif node.kind == "string":
        buffer.append(_TAG_STRING)
        _append_text(str(node.value), buffer)
    elif node.kind == "array":
        _check_depth(depth)
        elements = node.elements()
        start = _open_container(_TAG_ARRAY, len(elements), buffer)
        for element in elements:
            _encode_value(element, buffer, depth + 1)
        _close_container(start, buffer)
    else:
        _check_depth(depth)
        entries = node.items()
        start = _open_container(_TAG_MAP, len(entries), buffer)
        for key, child in entries:
            _append_text(key, buffer)
            _encode_value(child, buffer, depth + 1)
        _close_container(start, buffer)


def _encode_number(value: int | float, buffer: bytearray) -> None:
    if isinstance(value, int):
        if INT64_MIN <= value <= INT64_MAX:
            buffer.append(_TAG_INT)
            buffer += _I64.pack(value)
        else:
            buffer.append(_TAG_BIGINT)
            _append_text(str(value), buffer)
        return
    buffer.append(_TAG_FLOAT)
    buffer += _F64.pack(value)


def _append_text(text: str, buffer: bytearray) -> None:
    encoded = text.encode("utf-8")
    buffer += _U32.pack(len(encoded))
    buffer += encoded


def _open_container(tag: int, count: int, buffer: bytearray) -> int:
    buffer.append(tag)
    start = len(buffer)
    buffer += _CONTAINER_HEADER.pack(0, count)
    return start


def _close_container(start: int, buffer: bytearray) -> None:
    body_length = len(buffer) - start - _CONTAINER_HEADER.size
    buffer[start : start + _U32.size] = _U32.pack(body_length)


def _decode_value(reader: _Reader, depth: int = 0) -> GenericDocument:
    tag = reader.read_tag()
    if tag == _TAG_NULL:
        return GenericDocument("null")
    if tag == _TAG_FALSE:
        return GenericDocument("bool", False)
    if tag == _TAG_TRUE:
        return GenericDocument("bool", True)
    if tag == _TAG_INT:
        return GenericDocument("number", reader.read_i64())
    if tag == _TAG_BIGINT:
        return GenericDocument("number", _parse_bigint(reader.read_bytes(reader.read_u32())))
    if tag == _TAG_FLOAT:
        return GenericDocument("number", reader.read_f64())
    if tag == _TAG_STRING:
        return GenericDocument("string", reader.read_text())
    if tag == _TAG_ARRAY:
        _check_depth(depth)
        body_length, count = reader.read_container_header()
        body_end = reader.offset + body_length
        elements = [_decode_value(reader, depth + 1) for _ in range(count)]
        reader.expect_offset(body_end, "array")
        return GenericDocument("array", tuple(elements))
    if tag == _TAG_MAP:
        _check_depth(depth)
        body_length, count = reader.read_container_header()
        body_end = reader.offset + body_length
        entries: list[tuple[str, GenericDocument]] = []
        seen_keys: set[str] = set()
        for _ in range(count):
            key = reader.read_text()
            if key in seen_keys:
                raise MalformedDocumentError(f"Blob map repeats key '{key}'.")
            seen_keys.add(key)
            entries.append((key, _decode_value(reader, depth + 1)))
        reader.expect_offset(body_end, "map")
        return GenericDocument("map", tuple(entries))
    raise MalformedDocumentError(f"Unknown blob value tag 0x{tag:02x} at offset {reader.offset - 1}.")


def _check_depth(depth: int) -> None:
    if depth >= MAX_DOCUMENT_DEPTH:
        raise MalformedDocumentError(
            f"Document nests containers deeper than {MAX_DOCUMENT_DEPTH} levels."
        )


def _skip_value(reader: _Reader) -> None:
    tag = reader.read_tag()
    if tag in (_TAG_NULL, _TAG_FALSE, _TAG_TRUE):
        return
    if tag in (_TAG_INT, _TAG_FLOAT):
        reader.skip(8)
    elif tag in (_TAG_BIGINT, _TAG_STRING):
        reader.skip(reader.read_u32())
    elif tag in (_TAG_ARRAY, _TAG_MAP):
        body_length, _ = reader.read_container_header()
        reader.skip(body_length)
    else:
        raise MalformedDocumentError(
            f"Unknown blob value tag 0x{tag:02x} at offset {reader.offset - 1}."
        )


def _parse_bigint(raw: bytes) -> int:
    try:
        return int(raw.decode("ascii"))
    except (UnicodeDecodeError, ValueError) as error:
        raise MalformedDocumentError(f"Invalid big integer payload {raw!r} in blob.") from error


class _Reader:
    """Bounds-checked cursor over blob bytes."""

    def __init__(self, data: bytes) -> None:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise MalformedDocumentError(
                f"Blob must be bytes, got {type(data).__name__}."
            )
        self.data = bytes(data)
        self.offset = 0

    def read_header(self) -> None:
        header = self.read_bytes(len(_HEADER))
        if header[: len(BLOB_MAGIC)] != BLOB_MAGIC:
            raise MalformedDocumentError("Blob does not start with the document magic bytes.")
        if header[-1] != BLOB_FORMAT_VERSION:
            raise MalformedDocumentError(
                f"Unsupported blob format {header[-1]}; expected {BLOB_FORMAT_VERSION}."
            )

    def read_bytes(self, length: int) -> bytes:
        end = self.offset + length
        if end > len(self.data):
            raise MalformedDocumentError(
                f"Blob is truncated: needed {length} byte(s) at offset {self.offset}."
            )
        chunk = self.data[self.offset : end]
        self.offset = end
        return chunk

    def skip(self, length: int) -> None:
        self.read_bytes(length)

    def read_tag(self) -> int:
        return self.read_bytes(1)[0]

    def read_u32(self) -> int:
        return _U32.unpack(self.read_bytes(_U32.size))[0]

    def read_i64(self) -> int:
        return _I64.unpack(self.read_bytes(_I64.size))[0]

    def read_f64(self) -> float:
        return _F64.unpack(self.read_bytes(_F64.size))[0]

    def read_text(self) -> str:
        raw = self.read_bytes(self.read_u32())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as error:
            raise MalformedDocumentError(f"Blob holds invalid UTF-8 text: {error}.") from error

    def read_container_header(self) -> tuple[int, int]:
        return _CONTAINER_HEADER.unpack(self.read_bytes(_CONTAINER_HEADER.size))

    def expect_offset(self, expected: int, context: str) -> None:
        if self.offset != expected:
            raise MalformedDocumentError(
                f"Blob {context} length does not match its entries at offset {self.offset}."
            )
