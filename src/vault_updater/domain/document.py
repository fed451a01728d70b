"""Structured document tree and patch requests.

Purpose
-------
Model a parsed configuration document as an immutable tree of maps, sequences,
and tagged scalars, and provide the pure operations the patch engine composes:
path splitting, nested assignment, lookup, and deterministic key sorting.

Contents
--------
* :class:`ScalarNode` / :class:`MapNode` / :class:`SequenceNode` - the three
  node variants (:data:`DocumentNode`).
* :class:`PatchRequest` - one desired write (path, value, optional tag).
* :func:`split_path` - turn a dotted string or a segment list into a path.
* :func:`set_in` / :func:`get_in` - functional assignment and lookup.
* :func:`sort_deep` - recursive code-point ordering of every map.

System Role
-----------
Lives in the domain layer and performs no I/O. The YAML codec converts text to
and from these nodes; :class:`vault_updater.application.patch.PatchEngine`
strings the helpers together.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Sequence, Union

from .errors import PathConflict, ValidationError

VAULT_TAG = "!vault"
"""Tag marking a scalar as an Ansible vault ciphertext."""


@dataclass(frozen=True, slots=True)
class ScalarNode:
    """Leaf value of the document.

    ``tag`` is ``None`` for plain strings; any other resolved tag (``!vault``,
    ``tag:yaml.org,2002:int``) is preserved verbatim. ``style`` records the
    source quoting style and is only a serialisation hint.
    """

    value: str
    tag: str | None = None
    style: str | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class MapNode:
    """Mapping of unique string keys to child nodes.

    ``key_tags`` remembers the resolved tag of keys that were not strings in
    the source (``1``, ``yes``, the ``<<`` merge key). Keys without an entry
    are strings. Like :attr:`ScalarNode.style` it is a serialisation hint.

    Examples
    --------
    >>> node = MapNode({"b": ScalarNode("2"), "a": ScalarNode("1")})
    >>> list(node.entries)
    ['b', 'a']
    >>> node.get("a")
    ScalarNode(value='1', tag=None, style=None)
    """

    entries: Mapping[str, "DocumentNode"] = field(default_factory=dict)
    key_tags: Mapping[str, str] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))
        tags = {key: tag for key, tag in self.key_tags.items() if key in self.entries}
        object.__setattr__(self, "key_tags", MappingProxyType(tags))

    def get(self, key: str) -> "DocumentNode | None":
        return self.entries.get(key)

    def with_entry(self, key: str, node: "DocumentNode") -> MapNode:
        """Return a copy with *key* inserted or replaced."""

        updated = dict(self.entries)
        updated[key] = node
        return MapNode(updated, self.key_tags)


@dataclass(frozen=True, slots=True)
class SequenceNode:
    """Ordered list of child nodes."""

    items: tuple["DocumentNode", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))


DocumentNode = Union[ScalarNode, MapNode, SequenceNode]


@dataclass(frozen=True, slots=True)
class PatchRequest:
    """Instruction to set ``value`` at ``path``, optionally annotated with ``tag``.

    Examples
    --------
    >>> PatchRequest.from_key("db.password", "s3cret").path
    ('db', 'password')
    >>> PatchRequest.from_key(["certs", "example.com"], "pem").path
    ('certs', 'example.com')
    """

    path: tuple[str, ...]
    value: str
    tag: str | None = None

    def __post_init__(self) -> None:
        path = tuple(self.path)
        if not path:
            raise ValidationError("Patch path must contain at least one segment")
        if not all(isinstance(segment, str) for segment in path):
            raise ValidationError("Patch path segments must be strings")
        if not isinstance(self.value, str):
            raise ValidationError(f"Patch value for {'.'.join(path)} must be a string")
        object.__setattr__(self, "path", path)

    @classmethod
    def from_key(cls, key: str | Sequence[str], value: str, tag: str | None = None) -> PatchRequest:
        return cls(split_path(key), value, tag)

    def under(self, *prefix: str) -> PatchRequest:
        """Return the same request nested below *prefix*."""

        return PatchRequest((*prefix, *self.path), self.value, self.tag)


def split_path(key: str | Sequence[str]) -> tuple[str, ...]:
    """Normalise a dotted key or a segment sequence into a path tuple.

    The string form is split on ``.``; the sequence form is used verbatim so
    segments may contain literal dots. Neither form may contain empty segments.

    Examples
    --------
    >>> split_path("reverse_proxy.tls")
    ('reverse_proxy', 'tls')
    >>> split_path(["example.com", "key"])
    ('example.com', 'key')
    >>> split_path("a..b")
    Traceback (most recent call last):
    ...
    vault_updater.domain.errors.ValidationError: Invalid dotted key 'a..b': empty segment
    """

    if isinstance(key, str):
        segments = tuple(key.split("."))
        if any(segment == "" for segment in segments):
            raise ValidationError(f"Invalid dotted key {key!r}: empty segment")
        return segments
    segments = tuple(key)
    if not segments:
        raise ValidationError("Key must contain at least one segment")
    if not all(isinstance(segment, str) for segment in segments):
        raise ValidationError("Key segments must be strings")
    if any(segment == "" for segment in segments):
        raise ValidationError(f"Invalid key {list(segments)!r}: empty segment")
    return segments


def set_in(root: DocumentNode, path: Sequence[str], leaf: DocumentNode) -> MapNode:
    """Return a new tree where *path* resolves to *leaf*.

    Missing intermediate segments become empty maps. Existing scalars and
    sequences are never replaced by maps; they raise :class:`PathConflict`.
    The input tree is left untouched.

    Examples
    --------
    >>> tree = set_in(MapNode(), ["a", "b"], ScalarNode("x"))
    >>> get_in(tree, ["a", "b"]).value
    'x'
    >>> set_in(tree, ["a", "b", "c"], ScalarNode("y"))
    Traceback (most recent call last):
    ...
    vault_updater.domain.errors.PathConflict: Cannot set a.b.c: a.b is not a mapping
    """

    segments = tuple(path)
    return _assign(root, segments, 0, leaf)


def _assign(node: DocumentNode, path: tuple[str, ...], depth: int, leaf: DocumentNode) -> MapNode:
    if not isinstance(node, MapNode):
        raise PathConflict(path, depth)
    key = path[depth]
    if depth == len(path) - 1:
        return node.with_entry(key, leaf)
    child = node.get(key)
    if child is None:
        child = MapNode()
    return node.with_entry(key, _assign(child, path, depth + 1, leaf))


def get_in(root: DocumentNode, path: Sequence[str]) -> DocumentNode | None:
    """Return the node at *path* or ``None`` when any segment is missing."""

    current: DocumentNode | None = root
    for segment in path:
        if not isinstance(current, MapNode):
            return None
        current = current.get(segment)
        if current is None:
            return None
    return current


def sort_deep(node: DocumentNode) -> DocumentNode:
    """Order every map by key (code-point order), recursing through sequences.

    Sequence order is preserved. Sorting a sorted tree yields an identical tree.

    Examples
    --------
    >>> tree = MapNode({"b": ScalarNode("1"), "a": SequenceNode((MapNode({"z": ScalarNode("2"), "y": ScalarNode("3")}),))})
    >>> ordered = sort_deep(tree)
    >>> list(ordered.entries), list(ordered.entries["a"].items[0].entries)
    (['a', 'b'], ['y', 'z'])
    """

    if isinstance(node, MapNode):
        return MapNode({key: sort_deep(node.entries[key]) for key in sorted(node.entries)}, node.key_tags)
    if isinstance(node, SequenceNode):
        return SequenceNode(tuple(sort_deep(item) for item in node.items))
    return node


EMPTY_DOCUMENT = MapNode()
"""Tree used when the remote document does not exist yet."""
