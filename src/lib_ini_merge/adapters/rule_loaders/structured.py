"""Structured rule file loaders.

Purpose
-------
Convert on-disk rule files into Python mappings that the rule translator
(:mod:`lib_ini_merge.adapters.rule_loaders.specs`) understands. Adapters are
small wrappers around ``tomllib``/``json``/``yaml.safe_load`` so error
handling and observability live in one place.

Contents
--------
* :class:`BaseRuleLoader` – shared helpers for reading files and validating
  mapping outputs.
* :class:`TOMLRuleLoader` – loader for the canonical TOML format.
* :class:`JSONRuleLoader` – minimal JSON loader.
* :class:`YAMLRuleLoader` – YAML loader (only available when PyYAML is
  installed).
* :data:`RULE_LOADERS` – loaders keyed by file suffix.

System Role
-----------
Invoked by :func:`lib_ini_merge.core.load_rules` before the mapping is turned
into a :class:`~lib_ini_merge.domain.rules.RuleSet`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Final, Mapping

try:  # Python >= 3.11
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore[no-redef]

from ...domain.errors import RuleFileError, RuleFileNotFound
from ...observability import log_debug, log_error

try:
    import yaml  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    yaml = None  # type: ignore[assignment]


class BaseRuleLoader:
    """Common utilities shared by the structured rule loaders."""

    def _read(self, path: str) -> bytes:
        """Read *path* as bytes, raising :class:`RuleFileNotFound` when the file is missing.

        Examples
        --------
        >>> from tempfile import NamedTemporaryFile
        >>> tmp = NamedTemporaryFile(delete=False)
        >>> _ = tmp.write(b"rules = []")
        >>> tmp.close()
        >>> BaseRuleLoader()._read(tmp.name)[:5]
        b'rules'
        >>> Path(tmp.name).unlink()
        """

        file_path = Path(path)
        if not file_path.is_file():
            raise RuleFileNotFound(f"Rule file not found: {path}")
        payload = file_path.read_bytes()
        log_debug("rule_file_read", document="rules", path=path, size=len(payload))
        return payload

    @staticmethod
    def _ensure_mapping(data: object, *, path: str) -> Mapping[str, object]:
        """Ensure *data* behaves like a mapping, otherwise raise ``RuleFileError``.

        Examples
        --------
        >>> BaseRuleLoader._ensure_mapping({"rules": []}, path="demo")
        {'rules': []}
        >>> BaseRuleLoader._ensure_mapping(42, path="demo")
        Traceback (most recent call last):
        ...
        lib_ini_merge.domain.errors.RuleFileError: Rule file demo did not produce a mapping
        """

        if not isinstance(data, Mapping):
            raise RuleFileError(f"Rule file {path} did not produce a mapping")
        return data  # type: ignore[return-value]


class TOMLRuleLoader(BaseRuleLoader):
    """Load TOML rule files using the standard library parser."""

    def load(self, path: str) -> Mapping[str, object]:
        """Return mapping extracted from the TOML file at *path*.

        Examples
        --------
        >>> from tempfile import NamedTemporaryFile
        >>> tmp = NamedTemporaryFile('w', delete=False, encoding='utf-8')
        >>> _ = tmp.write('[[rules]]\\nsection = "General"\\naction = "ignore"\\n')
        >>> tmp.close()
        >>> TOMLRuleLoader().load(tmp.name)["rules"][0]["action"]
        'ignore'
        >>> Path(tmp.name).unlink()
        """

        try:
            text = self._read(path).decode("utf-8")
            data = tomllib.loads(text)
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
            log_error("rule_file_invalid", document="rules", path=path, format="toml", error=str(exc))
            raise RuleFileError(f"Invalid TOML in {path}: {exc}") from exc
        result = self._ensure_mapping(data, path=path)
        log_debug("rule_file_loaded", document="rules", path=path, format="toml")
        return result


class JSONRuleLoader(BaseRuleLoader):
    """Load JSON rule files."""

    def load(self, path: str) -> Mapping[str, object]:
        try:
            data = json.loads(self._read(path))
        except json.JSONDecodeError as exc:
            log_error("rule_file_invalid", document="rules", path=path, format="json", error=str(exc))
            raise RuleFileError(f"Invalid JSON in {path}: {exc}") from exc
        result = self._ensure_mapping(data, path=path)
        log_debug("rule_file_loaded", document="rules", path=path, format="json")
        return result


class YAMLRuleLoader(BaseRuleLoader):
    """Load YAML rule files when PyYAML is available."""

    def load(self, path: str) -> Mapping[str, object]:
        """Return mapping extracted from the YAML file at *path*.

        Raises
        ------
        RuleFileError
            When PyYAML is not installed or the document is malformed.
        """

        if yaml is None:
            raise RuleFileError("PyYAML is required for YAML rule files")
        try:
            data = yaml.safe_load(self._read(path))  # type: ignore[operator]
        except yaml.YAMLError as exc:  # type: ignore[attr-defined]
            log_error("rule_file_invalid", document="rules", path=path, format="yaml", error=str(exc))
            raise RuleFileError(f"Invalid YAML in {path}: {exc}") from exc
        if data is None:
            data = {}
        result = self._ensure_mapping(data, path=path)
        log_debug("rule_file_loaded", document="rules", path=path, format="yaml")
        return result


RULE_LOADERS: Final[Mapping[str, BaseRuleLoader]] = {
    ".toml": TOMLRuleLoader(),
    ".json": JSONRuleLoader(),
    ".yaml": YAMLRuleLoader(),
    ".yml": YAMLRuleLoader(),
}
"""Supported rule file loaders keyed by suffix."""
