"""Settings and the sources they are read from.

:func:`load_settings` assembles flat (key-value) sources into an immutable
:class:`Settings`. Keys are upper-case field names (``OVERLAP``,
``ALLOW_DUPLICATE_SCANS``); the first source holding a key wins and
*overrides* beat every source.
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

from .constants import ENV_PREFIX, OVERLAP_MERGE, OVERLAP_POLICIES
from .exceptions import ConfigurationError


def _truthy(s: str) -> bool:
    return s.strip().lower() in {"1", "true", "yes", "on", "y", "t"}


@dataclass(frozen=True)
class Settings:
    """Defaults applied to every scan of a registry.

    Attributes:
        overlap: ``"merge"`` collapses identical pairs produced by several
            conventions in one pass; ``"error"`` reports them as ambiguous.
        allow_duplicate_scans: Let a later scan pass replace entries of an
            earlier one instead of raising ``AmbiguousRegistrationError``.
    """

    overlap: str = OVERLAP_MERGE
    allow_duplicate_scans: bool = False

    def __post_init__(self) -> None:
        if self.overlap not in OVERLAP_POLICIES:
            raise ConfigurationError(f"Unknown overlap policy {self.overlap!r}; expected one of {OVERLAP_POLICIES}")


class SettingsSource:
    """Base class for flat sources. :meth:`get` returns ``None`` for missing keys."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError


class EnvSource(SettingsSource):
    """Source backed by environment variables.

    Args:
        prefix: Prepended to every key, ``PICO_CONVENTIONS_`` by default.
    """

    def __init__(self, prefix: str = ENV_PREFIX) -> None:
        self.prefix = prefix

    def get(self, key: str) -> Optional[str]:
        return os.environ.get(self.prefix + key)


class FlatDictSource(SettingsSource):
    """Source backed by an in-memory mapping; keys are matched case-insensitively."""

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = {str(k).upper(): v for k, v in dict(data).items()}

    def get(self, key: str) -> Optional[str]:
        v = self._data.get(key.upper())
        if v is None:
            return None
        if isinstance(v, (str, int, float, bool)):
            return str(v)
        return None


class YamlFileSource(FlatDictSource):
    """Source reading a YAML mapping from *path*, optionally below *section*.

    Requires ``PyYAML`` (``pip install pico-conventions[yaml]``).

    Raises:
        ConfigurationError: If PyYAML is not installed, or the file cannot
            be loaded or does not hold a mapping.
    """

    def __init__(self, path: str, section: Optional[str] = None) -> None:
        try:
            import yaml
        except ImportError as e:
            raise ConfigurationError("PyYAML not installed") from e
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except Exception as e:
            raise ConfigurationError(f"Failed to load YAML settings: {e}")
        if section is not None:
            data = data.get(section, {}) if isinstance(data, dict) else None
        if not isinstance(data, dict):
            raise ConfigurationError(f"YAML settings in {path} must be a mapping")
        super().__init__(data)


def load_settings(*sources: SettingsSource, overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """Build :class:`Settings` from *sources*, falling back to field defaults.

    Example:
        >>> load_settings(EnvSource(), FlatDictSource({"overlap": "error"})).overlap
        'error'
    """
    for src in sources:
        if not isinstance(src, SettingsSource):
            raise ConfigurationError(f"Unknown settings source type: {type(src)}")
    upper_overrides = {k.upper(): v for k, v in (overrides or {}).items()}

    values: Dict[str, Any] = {}
    for f in fields(Settings):
        key = f.name.upper()
        if key in upper_overrides:
            raw: Any = upper_overrides[key]
        else:
            raw = next((v for v in (s.get(key) for s in sources) if v is not None), None)
        if raw is None:
            continue
        if f.type in (bool, "bool"):
            values[f.name] = raw if isinstance(raw, bool) else _truthy(str(raw))
        else:
            values[f.name] = str(raw).strip().lower()
    return Settings(**values)
