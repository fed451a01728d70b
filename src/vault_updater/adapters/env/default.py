"""Environment variable settings source.

Purpose
-------
Translate ``VAULT_UPDATER_*`` process environment variables into the nested
settings tree. This is the highest-precedence settings layer.

Key behaviours
--------------
* Only variables carrying the prefix are captured.
* ``__`` nests (``VAULT_UPDATER_STORE__TOKEN`` -> ``{"store": {"token": ...}}``).
* Values stay strings. Tokens and password file names must survive verbatim,
  so numeric conversion happens in :class:`vault_updater.domain.settings.Settings`.
"""

from __future__ import annotations

import os
from typing import Mapping

from ...domain.errors import ConfigurationError
from ...observability import log_debug

ENV_PREFIX = "VAULT_UPDATER"


class EnvSettingsLoader:
    """Load environment variables that belong to the settings namespace."""

    def __init__(self, *, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def load(self, prefix: str = ENV_PREFIX) -> dict[str, object]:
        """Return a nested mapping of the variables starting with *prefix*.

        Examples
        --------
        >>> loader = EnvSettingsLoader(environ={
        ...     'VAULT_UPDATER_STORE__TOKEN': '0123',
        ...     'VAULT_UPDATER_VAULT__MAX_WORKERS': '8',
        ...     'HOME': '/root',
        ... })
        >>> loader.load()
        {'store': {'token': '0123'}, 'vault': {'max_workers': '8'}}
        """

        prefix = f"{prefix}_" if prefix and not prefix.endswith("_") else prefix
        collected: dict[str, object] = {}
        for key, value in sorted(self._environ.items()):
            if not key.startswith(prefix):
                continue
            stripped = key[len(prefix) :]
            if not stripped:
                continue
            assign_nested(collected, stripped, value)
        log_debug("env_variables_loaded", layer="env", path=None, keys=sorted(collected))
        return collected


def assign_nested(target: dict[str, object], key: str, value: object) -> None:
    """Store *value* under the lower-cased ``__``-separated segments of *key*.

    Examples
    --------
    >>> data: dict[str, object] = {}
    >>> assign_nested(data, 'LOG__LEVEL', 'debug')
    >>> data
    {'log': {'level': 'debug'}}
    >>> assign_nested(data, 'LOG__LEVEL__NAME', 'x')
    Traceback (most recent call last):
    ...
    vault_updater.domain.errors.ConfigurationError: Setting LOG__LEVEL__NAME nests below a value
    """

    parts = [part.lower() for part in key.split("__")]
    if any(not part for part in parts):
        raise ConfigurationError(f"Setting {key} has an empty segment")
    cursor = target
    for part in parts[:-1]:
        child = cursor.setdefault(part, {})
        if not isinstance(child, dict):
            raise ConfigurationError(f"Setting {key} nests below a value")
        cursor = child
    if isinstance(cursor.get(parts[-1]), dict):
        raise ConfigurationError(f"Setting {key} would replace a group of settings")
    cursor[parts[-1]] = value
