"""JSON trigger file listing domains with renewed certificates.

The file holds one JSON array of domain names, written sorted and
deduplicated with two-space indentation. A missing or unreadable file counts
as "nothing pending" so a corrupt file never blocks the renewal hook.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Iterable

from ...observability import log_debug, log_warning


class JsonTriggerFile:
    """:class:`vault_updater.application.ports.TriggerStore` backed by a JSON file.

    Examples
    --------
    >>> from tempfile import TemporaryDirectory
    >>> tmp = TemporaryDirectory()
    >>> triggers = JsonTriggerFile(Path(tmp.name) / "updated-certs.json")
    >>> triggers.add("b.example.com")
    ['b.example.com']
    >>> triggers.add("a.example.com")
    ['a.example.com', 'b.example.com']
    >>> triggers.discard(["b.example.com"])
    ['a.example.com']
    >>> tmp.cleanup()
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[str]:
        if not self._path.is_file():
            log_debug("trigger_file_missing", layer="triggers", path=str(self._path))
            return []
        try:
            parsed = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            log_warning("trigger_file_ignored", layer="triggers", path=str(self._path), error=type(exc).__name__)
            return []
        if not isinstance(parsed, list):
            log_warning("trigger_file_ignored", layer="triggers", path=str(self._path), error="not a JSON array")
            return []
        return sorted({str(item) for item in parsed})

    def add(self, domain: str) -> list[str]:
        return self._save({*self.load(), domain})

    def discard(self, domains: Iterable[str]) -> list[str]:
        return self._save(set(self.load()) - set(domains))

    def _save(self, domains: set[str]) -> list[str]:
        ordered = sorted(domains)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        scratch = self._path.with_name(f".{self._path.name}.tmp")
        scratch.write_text(json.dumps(ordered, indent=2), encoding="utf-8")
        os.replace(scratch, self._path)
        log_debug("trigger_file_saved", layer="triggers", path=str(self._path), domains=ordered)
        return ordered
