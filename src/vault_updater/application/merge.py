"""Settings layer merge.

Purpose
-------
Fold the settings layers (dotenv files, then the environment) into one nested
tree and remember, for every leaf, which layer supplied it. Free of I/O so the
composition root and tests share it.

Contents
    - ``merge_layers``: public entry point.
    - ``_merge_into``: recursive step that keeps provenance in sync.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Iterable

from ..domain.settings import SourceInfo


def merge_layers(
    layers: Iterable[tuple[str, Mapping[str, object], str | None]],
) -> tuple[dict[str, object], dict[str, SourceInfo]]:
    """Merge ``(layer, mapping, path)`` tuples ordered lowest precedence first.

    A leaf replaces whatever sat at its key; a mapping merges into an existing
    mapping and replaces a leaf. Provenance for replaced subtrees is dropped.

    Examples
    --------
    >>> merged, meta = merge_layers([
    ...     ("dotenv", {"store": {"owner": "acme", "path": "a.yml"}}, ".env.default"),
    ...     ("env", {"store": {"path": "b.yml"}}, None),
    ... ])
    >>> merged
    {'store': {'owner': 'acme', 'path': 'b.yml'}}
    >>> meta["store.path"]["layer"], meta["store.owner"]["path"]
    ('env', '.env.default')
    """

    merged: dict[str, object] = {}
    meta: dict[str, SourceInfo] = {}
    for layer, data, path in layers:
        _merge_into(merged, meta, data, layer, path, ())
    return merged, meta


def _merge_into(
    target: dict[str, object],
    meta: dict[str, SourceInfo],
    incoming: Mapping[str, object],
    layer: str,
    path: str | None,
    segments: tuple[str, ...],
) -> None:
    for key, value in incoming.items():
        dotted = ".".join((*segments, key))
        if isinstance(value, Mapping):
            existing = target.get(key)
            if not isinstance(existing, dict):
                _forget(meta, dotted)
                existing = {}
                target[key] = existing
            _merge_into(existing, meta, value, layer, path, (*segments, key))
        else:
            _forget(meta, dotted)
            target[key] = value
            meta[dotted] = SourceInfo(layer=layer, path=path, key=dotted)


def _forget(meta: dict[str, SourceInfo], prefix: str) -> None:
    for key in [k for k in meta if k == prefix or k.startswith(prefix + ".")]:
        del meta[key]
