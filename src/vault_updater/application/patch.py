"""Document patch engine.

Purpose
-------
Apply a batch of :class:`PatchRequest` objects to a serialised document and
return the new serialised document. The engine is a pure function of its
inputs: it parses, rebuilds the tree functionally, sorts every map, and
serialises. Either every request lands or an exception is raised.

Contents
    - ``PatchEngine``: binds a :class:`DocumentCodec` and exposes ``apply``.
    - ``apply_to_tree``: the codec-free core used by ``PatchEngine`` and tests.

System Role
-----------
Called by :class:`vault_updater.application.update.VaultUpdateService` between
the store read and the store write. Safe to call repeatedly on retries.
"""

from __future__ import annotations

from typing import Iterable

from ..domain.document import DocumentNode, PatchRequest, ScalarNode, set_in, sort_deep
from ..observability import log_debug
from .ports import DocumentCodec


def apply_to_tree(root: DocumentNode, requests: Iterable[PatchRequest]) -> DocumentNode:
    """Apply *requests* in order to *root* and return the sorted result.

    Examples
    --------
    >>> from vault_updater.domain.document import MapNode
    >>> tree = apply_to_tree(MapNode(), [PatchRequest(("a", "c"), "y"), PatchRequest(("a", "b"), "x")])
    >>> list(tree.entries["a"].entries)
    ['b', 'c']
    """

    current = root
    for request in requests:
        current = set_in(current, request.path, ScalarNode(request.value, request.tag))
    return sort_deep(current)


class PatchEngine:
    """Parse -> patch -> sort -> serialise, bound to one codec."""

    def __init__(self, codec: DocumentCodec) -> None:
        self._codec = codec

    def apply(self, document: str | None, requests: Iterable[PatchRequest]) -> str:
        """Return *document* with every request applied.

        Parameters
        ----------
        document:
            Current serialised document, ``None`` or ``""`` when it does not
            exist yet.
        requests:
            Writes to perform. Later requests win when paths repeat.

        Raises
        ------
        ParseError
            When *document* is malformed.
        PathConflict
            When a request path crosses a scalar or sequence.
        """

        batch = list(requests)
        tree = self._codec.parse(document)
        patched = apply_to_tree(tree, batch)
        log_debug("document_patched", operation="patch", target=None, requests=len(batch))
        return self._codec.serialize(patched)
