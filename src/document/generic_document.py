"""Tagged-variant document tree.

This module defines the untyped intermediate form shared by the blob
codec, migration steps, and the indexed column projector. Documents are
immutable: every update returns a new tree that shares unchanged nodes
with the original.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Literal, Mapping, Sequence, Union

from core.constants import ENTITY_VERSION_FIELD
from core.errors import DocumentPathError, DocumentTypeError, MalformedDocumentError

DocumentKind = Literal["null", "bool", "number", "string", "array", "map"]
PathSegment = Union[str, int]
DocumentPath = Union[str, Sequence[PathSegment]]


@dataclass(frozen=True)
class GenericDocument:
    """One node of a document tree.

    Attributes:
        kind: Variant tag of this node.
        value: Variant payload. Arrays hold a tuple of nodes; maps hold a
            tuple of ``(key, node)`` pairs in insertion order.
    """

    kind: DocumentKind
    value: object = None

    def __repr__(self) -> str:
        return f"GenericDocument({self.to_python()!r})"

    def is_null(self) -> bool:
        """Return whether this node is the null variant."""
        return self.kind == "null"

    def as_bool(self) -> bool:
        """Read a boolean node."""
        if self.kind != "bool":
            raise DocumentTypeError(f"Expected a bool node, found {self.kind}.")
        return bool(self.value)

    def as_int(self) -> int:
        """Read an integral number node."""
        if self.kind != "number" or not isinstance(self.value, int):
            raise DocumentTypeError(f"Expected an integer number node, found {self._describe()}.")
        return self.value

    def as_float(self) -> float:
        """Read any number node as float."""
        if self.kind != "number":
            raise DocumentTypeError(f"Expected a number node, found {self.kind}.")
        return float(self.value)  # type: ignore[arg-type]

    def as_str(self) -> str:
        """Read a string node."""
        if self.kind != "string":
            raise DocumentTypeError(f"Expected a string node, found {self.kind}.")
        return str(self.value)

    def keys(self) -> tuple[str, ...]:
        """Return map keys in stored order."""
        return tuple(key for key, _ in self._entries())

    def items(self) -> tuple[tuple[str, GenericDocument], ...]:
        """Return map entries in stored order."""
        return self._entries()

    def elements(self) -> tuple[GenericDocument, ...]:
        """Return array elements in order."""
        if self.kind != "array":
            raise DocumentTypeError(f"Expected an array node, found {self.kind}.")
        return self.value  # type: ignore[return-value]

    def child(self, segment: PathSegment) -> GenericDocument | None:
        """Return one direct child, or None when absent."""
        if isinstance(segment, str):
            if self.kind != "map":
                return None
            for key, node in self._entries():
                if key == segment:
                    return node
            return None
        if self.kind != "array":
            return None
        elements = self.elements()
        if 0 <= segment < len(elements):
            return elements[segment]
        return None

    def get(self, path: DocumentPath) -> GenericDocument | None:
        """Resolve a path to a node.

        Args:
            path: Dotted path string or sequence of segments.

        Returns:
            The node at the path, or None when any segment is missing.
        """
        node: GenericDocument | None = self
        for segment in parse_path(path):
            if node is None:
                return None
            node = node.child(segment)
        return node

    def set(self, path: DocumentPath, value: object) -> GenericDocument:
        """Return a copy with the node at ``path`` replaced.

        Missing intermediate map keys are created as empty maps.

        Args:
            path: Dotted path string or sequence of segments.
            value: GenericDocument or plain Python value.

        Returns:
            Updated document.

        Raises:
            DocumentPathError: If the path is empty or crosses a scalar.
        """
        segments = parse_path(path)
        if not segments:
            raise DocumentPathError("Cannot set the document root; build a new document instead.")
        return _set_in(self, segments, from_python(value), 0)

    def remove(self, path: DocumentPath) -> GenericDocument:
        """Return a copy without the node at ``path``; unchanged when absent."""
        segments = parse_path(path)
        if not segments:
            raise DocumentPathError("Cannot remove the document root.")
        return _remove_in(self, segments, 0)

    def rename(self, old_path: DocumentPath, new_path: DocumentPath) -> GenericDocument:
        """Move a node to a new path.

        Renaming within the same map keeps the entry position.

        Raises:
            DocumentPathError: If the target key already exists in the same map.
        """
        old_segments = parse_path(old_path)
        new_segments = parse_path(new_path)
        node = self.get(old_segments)
        if node is None or old_segments == new_segments:
            return self
        same_parent = old_segments[:-1] == new_segments[:-1]
        if same_parent and isinstance(old_segments[-1], str) and isinstance(new_segments[-1], str):
            parent = self.get(old_segments[:-1])
            if parent is None or parent.kind != "map":
                raise DocumentPathError(f"Cannot rename under non-map parent of {old_path!r}.")
            if parent.child(new_segments[-1]) is not None:
                raise DocumentPathError(
                    f"Cannot rename '{old_segments[-1]}' to existing key '{new_segments[-1]}'."
                )
            renamed = mapping(
                (new_segments[-1] if key == old_segments[-1] else key, child)
                for key, child in parent.items()
            )
            if not old_segments[:-1]:
                return renamed
            return self.set(old_segments[:-1], renamed)
        return self.remove(old_segments).set(new_segments, node)

    @property
    def entity_version(self) -> int:
        """Return the root ``entityVersion`` value.

        Raises:
            MalformedDocumentError: If the tag is missing or not an integer.
        """
        if self.kind != "map":
            raise MalformedDocumentError(
                f"Document root must be a map carrying '{ENTITY_VERSION_FIELD}', found {self.kind}."
            )
        node = self.child(ENTITY_VERSION_FIELD)
        if node is None:
            raise MalformedDocumentError(
                f"Document is missing the '{ENTITY_VERSION_FIELD}' field at its root."
            )
        if node.kind != "number" or not isinstance(node.value, int):
            raise MalformedDocumentError(
                f"Document '{ENTITY_VERSION_FIELD}' must be an integer, found {node._describe()}."
            )
        return node.value

    def has_entity_version(self) -> bool:
        """Return whether the root carries any ``entityVersion`` field."""
        return self.kind == "map" and self.child(ENTITY_VERSION_FIELD) is not None

    def with_entity_version(self, version: int) -> GenericDocument:
        """Return a copy stamped with ``version``, keeping field order."""
        return self.set((ENTITY_VERSION_FIELD,), number(version))

    def to_python(self) -> object:
        """Convert the tree to plain Python values."""
        if self.kind == "array":
            return [element.to_python() for element in self.elements()]
        if self.kind == "map":
            return {key: node.to_python() for key, node in self._entries()}
        return self.value

    def walk(self) -> Iterator[GenericDocument]:
        """Yield this node and every descendant depth-first."""
        yield self
        if self.kind == "array":
            for element in self.elements():
                yield from element.walk()
        elif self.kind == "map":
            for _, node in self._entries():
                yield from node.walk()

    def _entries(self) -> tuple[tuple[str, GenericDocument], ...]:
        if self.kind != "map":
            raise DocumentTypeError(f"Expected a map node, found {self.kind}.")
        return self.value  # type: ignore[return-value]

    def _describe(self) -> str:
        if self.kind == "number":
            return f"number {self.value!r}"
        return self.kind


NULL = GenericDocument("null")


def null() -> GenericDocument:
    """Build a null node."""
    return NULL


def boolean(value: bool) -> GenericDocument:
    """Build a boolean node."""
    return GenericDocument("bool", bool(value))


def number(value: int | float) -> GenericDocument:
    """Build a number node; booleans are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DocumentTypeError(f"Expected int or float for a number node, got {type(value).__name__}.")
    return GenericDocument("number", value)


def string(value: str) -> GenericDocument:
    """Build a string node."""
    if not isinstance(value, str):
        raise DocumentTypeError(f"Expected str for a string node, got {type(value).__name__}.")
    return GenericDocument("string", value)


def array(elements: Iterable[object]) -> GenericDocument:
    """Build an array node from documents or plain values."""
    return GenericDocument("array", tuple(from_python(element) for element in elements))


def mapping(
    entries: Mapping[str, object] | Iterable[tuple[str, object]],
) -> GenericDocument:
    """Build a map node keeping the given key order.

    Raises:
        DocumentTypeError: If a key is not a string or appears twice.
    """
    pairs = entries.items() if isinstance(entries, Mapping) else entries
    built: list[tuple[str, GenericDocument]] = []
    seen: set[str] = set()
    for key, value in pairs:
        if not isinstance(key, str):
            raise DocumentTypeError(f"Map keys must be strings, got {type(key).__name__}.")
        if key in seen:
            raise DocumentTypeError(f"Duplicate map key '{key}'.")
        seen.add(key)
        built.append((key, from_python(value)))
    return GenericDocument("map", tuple(built))


def from_python(value: object) -> GenericDocument:
    """Convert a plain Python value into a document tree.

    Raises:
        DocumentTypeError: If the value has no document variant.
    """
    if isinstance(value, GenericDocument):
        return value
    if value is None:
        return NULL
    if isinstance(value, bool):
        return boolean(value)
    if isinstance(value, (int, float)):
        return number(value)
    if isinstance(value, str):
        return string(value)
    if isinstance(value, Mapping):
        return mapping(value)
    if isinstance(value, (list, tuple)):
        return array(value)
    raise DocumentTypeError(
        f"Cannot store value of type {type(value).__name__} in a document. "
        "Use None, bool, int, float, str, list, or dict."
    )


def parse_path(path: DocumentPath) -> tuple[PathSegment, ...]:
    """Normalize a path into segments.

    Dotted strings split on ``.``; ASCII all-digit segments index arrays.
    Use a tuple path to address a map key made of digits, such as ``("2024",)``.

    Raises:
        DocumentPathError: If the path has empty or non-string/int segments.
    """
    if isinstance(path, str):
        if path == "":
            raise DocumentPathError("Document path must not be empty.")
        segments: list[PathSegment] = []
        for part in path.split("."):
            if not part:
                raise DocumentPathError(f"Document path '{path}' has an empty segment.")
            segments.append(int(part) if part.isascii() and part.isdigit() else part)
        return tuple(segments)
    normalized: list[PathSegment] = []
    for segment in path:
        if isinstance(segment, bool) or not isinstance(segment, (str, int)):
            raise DocumentPathError(f"Invalid path segment {segment!r}: expected str or int.")
        if isinstance(segment, int) and segment < 0:
            raise DocumentPathError(f"Invalid path segment {segment}: indexes must be >= 0.")
        normalized.append(segment)
    return tuple(normalized)


def _set_in(
    node: GenericDocument,
    segments: tuple[PathSegment, ...],
    value: GenericDocument,
    depth: int,
) -> GenericDocument:
    segment = segments[depth]
    is_last = depth == len(segments) - 1
    if isinstance(segment, str):
        if node.kind != "map":
            raise DocumentPathError(
                f"Cannot set key '{segment}' on a {node.kind} node at "
                f"{_render(segments[:depth])}."
            )
        entries = list(node.items())
        for index, (key, current) in enumerate(entries):
            if key == segment:
                replacement = value if is_last else _set_in(current, segments, value, depth + 1)
                entries[index] = (key, replacement)
                return GenericDocument("map", tuple(entries))
        created = value if is_last else _set_in(mapping(()), segments, value, depth + 1)
        entries.append((segment, created))
        return GenericDocument("map", tuple(entries))
    if node.kind != "array":
        raise DocumentPathError(
            f"Cannot index [{segment}] into a {node.kind} node at {_render(segments[:depth])}."
        )
    elements = list(node.elements())
    if segment > len(elements):
        raise DocumentPathError(
            f"Index {segment} is out of range for an array of length {len(elements)} "
            f"at {_render(segments[:depth])}."
        )
    if segment == len(elements):
        created = value if is_last else _set_in(mapping(()), segments, value, depth + 1)
        elements.append(created)
    else:
        current = elements[segment]
        elements[segment] = value if is_last else _set_in(current, segments, value, depth + 1)
    return GenericDocument("array", tuple(elements))


def _remove_in(
    node: GenericDocument,
    segments: tuple[PathSegment, ...],
    depth: int,
) -> GenericDocument:
    segment = segments[depth]
    is_last = depth == len(segments) - 1
    current = node.child(segment)
    if current is None:
        return node
    replacement = None if is_last else _remove_in(current, segments, depth + 1)
    if replacement is current:
        return node
    if isinstance(segment, str):
        entries = [
            (key, replacement if key == segment else child)
            for key, child in node.items()
            if not (is_last and key == segment)
        ]
        return GenericDocument("map", tuple(entries))  # type: ignore[arg-type]
    elements = list(node.elements())
    if is_last:
        del elements[segment]
    else:
        elements[segment] = replacement  # type: ignore[assignment]
    return GenericDocument("array", tuple(elements))


def _render(segments: tuple[PathSegment, ...]) -> str:
    if not segments:
        return "<root>"
    return ".".join(str(segment) for segment in segments)
