"""Cue categories and the namespace of known cue names."""

import json
import logging
from pathlib import Path

from .exceptions import InputError

logger = logging.getLogger(__name__)

# Leading cue keywords that name a category rather than the cue itself:
# ``<SFX thunder>`` is the cue "thunder" in category "sfx".
CATEGORIES = frozenset({"sfx", "fx", "instrument", "ambience", "vocal", "music"})


def is_category(token: str) -> bool:
    return token.lower() in CATEGORIES


class CueNamespace:
    """Set of cue names a renderer knows how to realise.

    Lookups are case-insensitive. Names registered through *categorized*
    ``(name, category)`` pairs only match cues of those categories.
    """

    def __init__(self, names=(), categorized=()):
        self._names = {n.lower() for n in names}
        self._categorized: dict[str, set[str]] = {}
        for name, category in categorized:
            self._categorized.setdefault(name.lower(), set()).add(category.lower())

    def __len__(self) -> int:
        return len(self._names) + len(self._categorized)

    def is_known(self, name: str, category: str | None = None) -> bool:
        key = name.lower()
        if key in self._names:
            return True
        categories = self._categorized.get(key)
        if not categories:
            return False
        return category is None or category.lower() in categories

    def with_names(self, names) -> "CueNamespace":
        """Return a copy of this namespace with *names* added."""
        merged = CueNamespace(names=self._names | {n.lower() for n in names})
        merged._categorized = {k: set(v) for k, v in self._categorized.items()}
        return merged


def load_catalog(path: Path) -> CueNamespace:
    """Load a cue namespace from a JSON file.

    Two layouts are accepted: a plain list of names, or an instrument catalog
    of the form ``{"instruments": [{"id": "guitar_solo", "category": "sfx"}]}``.

    Raises InputError if the file cannot be read or has neither layout.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InputError(str(path), str(exc)) from exc

    if isinstance(data, list):
        namespace = CueNamespace(names=[str(n) for n in data])
    elif isinstance(data, dict) and isinstance(data.get("instruments"), list):
        categorized = []
        plain = []
        for entry in data["instruments"]:
            if not isinstance(entry, dict) or not entry.get("id"):
                continue
            if entry.get("category"):
                categorized.append((str(entry["id"]), str(entry["category"])))
            else:
                plain.append(str(entry["id"]))
        namespace = CueNamespace(names=plain, categorized=categorized)
    else:
        raise InputError(str(path), "expected a list of cue names or an instrument catalog")

    logger.debug("Loaded %d cue names from %s", len(namespace), path)
    return namespace
