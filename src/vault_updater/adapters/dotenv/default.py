"""`.env` settings source.

Purpose
-------
Read the dotenv files that sit below the environment in the settings
precedence chain. Unlike a search that stops at the first hit, every existing
file in the configured list becomes its own layer so later files override
earlier ones key by key.

Contents
--------
* :class:`DotEnvSettingsLoader` - returns ``(path, mapping)`` per existing file.
* :func:`parse_dotenv` - strict line parser shared by the loader and tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from ...domain.errors import ConfigurationError
from ...observability import log_debug, log_error
from ..env.default import assign_nested

DEFAULT_DOTENV_FILES = (".env.default", ".env.local")
SYSTEM_DOTENV_FILE = "/etc/opt/vault-updater/env"


class DotEnvSettingsLoader:
    """Load an ordered list of dotenv files, lowest precedence first.

    Parameters
    ----------
    paths:
        Candidate files. Missing files are skipped silently.
    """

    def __init__(self, paths: Iterable[str | Path]) -> None:
        self._paths = [Path(p) for p in paths]

    @classmethod
    def for_directory(cls, cwd: str | Path | None = None, *, system_file: str | Path | None = SYSTEM_DOTENV_FILE) -> DotEnvSettingsLoader:
        """Project files under *cwd*, followed by the system-wide file."""

        base = Path(cwd) if cwd else Path.cwd()
        paths: list[str | Path] = [base / name for name in DEFAULT_DOTENV_FILES]
        if system_file:
            paths.append(system_file)
        return cls(paths)

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def load(self) -> list[tuple[str, dict[str, object]]]:
        """Return ``(path, nested mapping)`` for each file that exists.

        Examples
        --------
        >>> from tempfile import TemporaryDirectory
        >>> tmp = TemporaryDirectory()
        >>> path = Path(tmp.name) / '.env.local'
        >>> _ = path.write_text('STORE__OWNER=acme\\n', encoding='utf-8')
        >>> [data for _, data in DotEnvSettingsLoader.for_directory(tmp.name, system_file=None).load()]
        [{'store': {'owner': 'acme'}}]
        >>> tmp.cleanup()
        """

        layers: list[tuple[str, dict[str, object]]] = []
        for candidate in self._paths:
            if not candidate.is_file():
                continue
            data = parse_dotenv(candidate)
            log_debug("dotenv_loaded", layer="dotenv", path=str(candidate), keys=sorted(data))
            layers.append((str(candidate), data))
        if not layers:
            log_debug("dotenv_not_found", layer="dotenv", path=None)
        return layers


def parse_dotenv(path: Path) -> dict[str, object]:
    """Parse *path* into a nested dictionary; malformed lines raise :class:`ConfigurationError`."""

    result: dict[str, object] = {}
    with path.open("r", encoding="utf-8") as handle:
        for line_number, raw_line in enumerate(handle, start=1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export ") :].lstrip()
            if "=" not in line:
                log_error("dotenv_invalid_line", layer="dotenv", path=str(path), line=line_number)
                raise ConfigurationError(f"Malformed line {line_number} in {path}")
            key, value = line.split("=", 1)
            assign_nested(result, key.strip(), _unquote(value.strip()))
    return result


def _unquote(value: str) -> str:
    """Drop matching quotes, or an inline comment from an unquoted value.

    Examples
    --------
    >>> _unquote('"a # b"')
    'a # b'
    >>> _unquote("value # comment")
    'value'
    """

    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    if value.startswith("#"):
        return ""
    if " #" in value:
        return value.split(" #", 1)[0].rstrip()
    return value
