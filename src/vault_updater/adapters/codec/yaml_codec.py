"""YAML document codec.

Purpose
-------
Convert YAML text into the domain :data:`DocumentNode` tree and back. Parsing
uses PyYAML's composer (``yaml.compose``) instead of ``yaml.safe_load`` so
application tags such as ``!vault`` survive as annotations rather than failing
construction. Serialisation feeds PyYAML node graphs to ``yaml.serialize`` so
output is deterministic: block collections, literal (``|``) style for every
multi-line scalar, tags written as YAML tag markers.

Contents
--------
* :class:`YamlDocumentCodec` - implementation of
  :class:`vault_updater.application.ports.DocumentCodec`.
* ``_to_tree`` / ``_to_yaml`` - recursive converters.

Known limits
------------
Comments, anchors, and collection-level tags are not retained; aliases are
expanded into copies. A document holding only a null (``---`` with comments)
reads as an empty map. Keys that were not strings in the source keep their
plain form; every other key is quoted when it would otherwise read as a
number, bool, or null.
"""

from __future__ import annotations

import yaml
from yaml.nodes import MappingNode as YamlMappingNode
from yaml.nodes import Node as YamlNode
from yaml.nodes import ScalarNode as YamlScalarNode
from yaml.nodes import SequenceNode as YamlSequenceNode

from ...domain.document import EMPTY_DOCUMENT, DocumentNode, MapNode, ScalarNode, SequenceNode
from ...domain.errors import ParseError
from ...observability import log_debug, log_error

STR_TAG = "tag:yaml.org,2002:str"
MAP_TAG = "tag:yaml.org,2002:map"
SEQ_TAG = "tag:yaml.org,2002:seq"
NULL_TAG = "tag:yaml.org,2002:null"

_BLOCK_STYLES = frozenset({"|", ">"})
_UNICODE_BREAKS = frozenset({"\x85", "\u2028", "\u2029", "\ufeff"})


class LiteralBlockDumper(yaml.SafeDumper):
    """Safe dumper that honours a requested literal style whenever YAML allows it.

    PyYAML's emitter abandons ``|`` for double quotes as soon as a value holds
    a tab or a space before a line break, although both are legal inside a
    literal block.
    """

    def choose_scalar_style(self) -> str:
        style = super().choose_scalar_style()
        if (
            self.event.style == "|"
            and style != "|"
            and not self.flow_level
            and not self.simple_key_context
            and _literal_safe(self.event.value)
        ):
            return "|"
        return style


def _literal_safe(value: str) -> bool:
    """True when every character of *value* can appear verbatim in a literal block."""

    for ch in value:
        if ch in "\n\t" or "\x20" <= ch <= "\x7e":
            continue
        if ch in _UNICODE_BREAKS:
            return False
        if not ("\xa0" <= ch <= "\ud7ff" or "\ue000" <= ch <= "\ufffd" or "\U00010000" <= ch <= "\U0010ffff"):
            return False
    return True


class YamlDocumentCodec:
    """Parse and serialise YAML documents.

    Examples
    --------
    >>> codec = YamlDocumentCodec()
    >>> tree = codec.parse("b: 1\\na: !vault |\\n  line1\\n  line2\\n")
    >>> tree.entries["a"].tag, tree.entries["b"].tag
    ('!vault', 'tag:yaml.org,2002:int')
    >>> print(codec.serialize(tree), end="")
    b: 1
    a: !vault |
      line1
      line2
    """

    def __init__(self, *, width: int | None = None, indent: int | None = None) -> None:
        self._width = width
        self._indent = indent

    def parse(self, text: str | None) -> DocumentNode:
        """Return the tree for *text*; ``None``, blank, or comment-only text is an empty map.

        Raises
        ------
        ParseError
            When the text is not a single well-formed YAML document, contains
            duplicate or non-scalar mapping keys, or recursive aliases.
        """

        if text is None or not text.strip():
            return EMPTY_DOCUMENT
        try:
            root = yaml.compose(text, Loader=yaml.SafeLoader)
        except yaml.YAMLError as exc:
            log_error("document_invalid", operation="parse", target=None, error=_describe(exc))
            raise ParseError(f"Invalid YAML document: {_describe(exc)}") from exc
        if root is None or (isinstance(root, YamlScalarNode) and root.tag == NULL_TAG):
            return EMPTY_DOCUMENT
        tree = _to_tree(root, frozenset())
        log_debug("document_parsed", operation="parse", target=None, size=len(text))
        return tree

    def serialize(self, node: DocumentNode) -> str:
        """Render *node* as a single YAML document."""

        return yaml.serialize(
            _to_yaml(node),
            Dumper=LiteralBlockDumper,
            allow_unicode=True,
            width=self._width,
            indent=self._indent,
        )


def _to_tree(node: YamlNode, active: frozenset[int]) -> DocumentNode:
    """Convert a composed PyYAML node; *active* holds ancestors to detect alias cycles."""

    if isinstance(node, YamlScalarNode):
        tag = None if node.tag == STR_TAG else node.tag
        return ScalarNode(node.value, tag, node.style or None)
    if id(node) in active:
        raise ParseError(f"Recursive alias at line {node.start_mark.line + 1} is not supported")
    active = active | {id(node)}
    if isinstance(node, YamlSequenceNode):
        return SequenceNode(tuple(_to_tree(item, active) for item in node.value))
    if isinstance(node, YamlMappingNode):
        entries: dict[str, DocumentNode] = {}
        key_tags: dict[str, str] = {}
        for key_node, value_node in node.value:
            if not isinstance(key_node, YamlScalarNode):
                raise ParseError(f"Unsupported non-scalar mapping key at line {key_node.start_mark.line + 1}")
            key = key_node.value
            if key in entries:
                raise ParseError(f"Duplicate mapping key {key!r} at line {key_node.start_mark.line + 1}")
            entries[key] = _to_tree(value_node, active)
            if key_node.tag != STR_TAG:
                key_tags[key] = key_node.tag
        return MapNode(entries, key_tags)
    raise ParseError(f"Unsupported YAML node {type(node).__name__}")


def _to_yaml(node: DocumentNode) -> YamlNode:
    if isinstance(node, ScalarNode):
        return YamlScalarNode(node.tag or STR_TAG, node.value, style=_scalar_style(node))
    if isinstance(node, SequenceNode):
        return YamlSequenceNode(SEQ_TAG, [_to_yaml(item) for item in node.items], flow_style=False)
    pairs = [(_key_node(key, node.key_tags.get(key, STR_TAG)), _to_yaml(child)) for key, child in node.entries.items()]
    return YamlMappingNode(MAP_TAG, pairs, flow_style=False)


def _key_node(key: str, tag: str) -> YamlScalarNode:
    """Key node carrying *tag*; the emitter quotes string keys that would not read back as strings."""

    return YamlScalarNode(tag, key)


def _scalar_style(node: ScalarNode) -> str | None:
    """Literal style for multi-line values, the source style otherwise.

    Examples
    --------
    >>> _scalar_style(ScalarNode("a\\nb", style='"'))
    '|'
    >>> _scalar_style(ScalarNode("single", style="|")) is None
    True
    """

    if "\n" in node.value:
        return "|"
    if node.style in _BLOCK_STYLES:
        return None
    return node.style


def _describe(exc: yaml.YAMLError) -> str:
    """Summarise a PyYAML error by problem and position, without echoing document text."""

    if isinstance(exc, yaml.MarkedYAMLError):
        problem = exc.problem or exc.context or "syntax error"
        mark = exc.problem_mark or exc.context_mark
        if mark is not None:
            return f"{problem} at line {mark.line + 1}, column {mark.column + 1}"
        return problem
    return type(exc).__name__
