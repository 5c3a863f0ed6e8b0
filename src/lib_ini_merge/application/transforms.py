"""Value-comparing transforms for ``Transform`` directives.

Purpose
-------
Some applications rewrite values in an equivalent but different spelling
(reordered lists, alternative shortcut encodings). Taking the source value in
those cases produces noisy diffs on every run. The transforms here keep the
target line when the two values are equivalent and take the source line
otherwise.

Contents
--------
* :class:`UnsortedListTransform` – compare values as unordered sets of items.
* :class:`KdeShortcutTransform` – treat ``none`` and empty as equal in the
  middle field of KDE global shortcut triples.
* :data:`TRANSFORMS` – registry used by the rule file loaders.

Both implement :class:`lib_ini_merge.application.ports.Transformer`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Final, Mapping

from ..domain.document import Property
from ..domain.errors import RuleFileError, TransformError


def _settle(name: str, source: Property | None, target: Property | None) -> tuple[Property, Property] | str | None:
    """Handle the one-sided cases shared by all transforms.

    Returns the line to write when only one side exists, otherwise the
    ``(source, target)`` pair that still needs comparing.
    """

    if source is None and target is None:
        raise TransformError(name, "?", "?", "neither source nor target value was supplied")
    if source is None:
        return target.raw  # type: ignore[union-attr]
    if target is None:
        return source.raw
    return source, target


def _require_value(name: str, prop: Property, side: str) -> str:
    if prop.value is None:
        raise TransformError(name, prop.section, prop.key, f"key is missing value in {side}")
    return prop.value


@dataclass(frozen=True, slots=True)
class UnsortedListTransform:
    """Keep the target line when both values hold the same items in any order.

    Examples
    --------
    >>> t = UnsortedListTransform(",")
    >>> src = Property("a", "b", "1,2,3", "b=1,2,3")
    >>> t.apply(src, Property("a", "b", "3,1,2", "b=3,1,2"))
    'b=3,1,2'
    >>> t.apply(src, Property("a", "b", "3,1", "b=3,1"))
    'b=1,2,3'
    """

    separator: str = ","
    name: str = field(default="unsorted-list", init=False)

    def __post_init__(self) -> None:
        if len(self.separator) != 1:
            raise ValueError("separator must be exactly one character")

    def apply(self, source: Property | None, target: Property | None) -> str | None:
        settled = _settle(self.name, source, target)
        if not isinstance(settled, tuple):
            return settled
        src, tgt = settled
        wanted = set(_require_value(self.name, src, "source").split(self.separator))
        present = set(_require_value(self.name, tgt, "target").split(self.separator))
        return tgt.raw if wanted == present else src.raw


@dataclass(frozen=True, slots=True)
class KdeShortcutTransform:
    """Ignore KDE flipping the middle field of a shortcut between ``""`` and ``"none"``.

    ``playmedia=none,,Play media playback`` and
    ``playmedia=none,none,Play media playback`` are treated as equal.
    """

    name: str = field(default="kde-shortcut", init=False)

    def apply(self, source: Property | None, target: Property | None) -> str | None:
        settled = _settle(self.name, source, target)
        if not isinstance(settled, tuple):
            return settled
        src, tgt = settled
        wanted = _require_value(self.name, src, "source").split(",")
        present = _require_value(self.name, tgt, "target").split(",")
        equivalent = (
            len(wanted) == len(present) == 3
            and wanted[0] == present[0]
            and wanted[2] == present[2]
            and wanted[1] in ("", "none")
            and present[1] in ("", "none")
        )
        return tgt.raw if equivalent else src.raw


def _unsorted_list(options: Mapping[str, object]) -> UnsortedListTransform:
    separator = options.get("separator", ",")
    if not isinstance(separator, str) or len(separator) != 1:
        raise RuleFileError("unsorted-list transform needs a one-character 'separator'")
    return UnsortedListTransform(separator)


def _kde_shortcut(options: Mapping[str, object]) -> KdeShortcutTransform:
    return KdeShortcutTransform()


TRANSFORMS: Final[Mapping[str, Callable[[Mapping[str, object]], object]]] = {
    "unsorted-list": _unsorted_list,
    "kde-shortcut": _kde_shortcut,
}
"""Transform factories keyed by the ``action`` name used in rule files."""
