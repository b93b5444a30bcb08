"""Metric labels derived from Marathon app labels."""

from __future__ import annotations

import re
from typing import Iterable

from marathon_exporter.config import ConfigError
from marathon_exporter.marathon import App

# Label names the exporter itself puts on app metrics
RESERVED_LABELS = frozenset({"app", "state"})

_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def sanitize_label_name(key: str) -> str:
    """Turn a Marathon label key into a valid Prometheus label name.

    ``com.example/team`` becomes ``com_example_team``; a leading digit is
    prefixed with ``_``.
    """
    name = _INVALID_CHARS.sub("_", key)
    if name[:1].isdigit():
        name = f"_{name}"
    return name


class LabelExtractor:
    """Map configured Marathon label keys to Prometheus label columns.

    The key order given at construction is the column order for every
    sample the exporter emits, so it never changes afterwards.
    """

    def __init__(self, keys: Iterable[str] = ()):
        """Initialize the extractor.

        Args:
            keys: Marathon app label keys, in column order. Blank entries
                are skipped and repeated keys keep their first position.

        Raises:
            ConfigError: If two keys map to the same label name or a key
                maps to a reserved name.
        """
        ordered: list[str] = []
        for key in keys:
            key = key.strip()
            if key and key not in ordered:
                ordered.append(key)

        names: list[str] = []
        for key in ordered:
            name = sanitize_label_name(key)
            if name in RESERVED_LABELS or name.startswith("__"):
                raise ConfigError(f"App label {key!r} maps to reserved label name {name!r}")
            if name in names:
                raise ConfigError(
                    f"App label {key!r} collides with another label as {name!r}"
                )
            names.append(name)

        self._keys = tuple(ordered)
        self._names = tuple(names)

    @property
    def keys(self) -> tuple[str, ...]:
        return self._keys

    @property
    def label_names(self) -> tuple[str, ...]:
        """Sanitized label names, in configured order."""
        return self._names

    def extract(self, app: App) -> tuple[str, ...]:
        """Label values for ``app``; a missing key yields an empty string."""
        return tuple(app.labels.get(key, "") for key in self._keys)
