"""Configuration for the parse pipeline."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import DEFAULT_BEATS_PER_BAR, DEFAULT_BPM, DEFAULT_MAX_REPEAT
from .registry import CueNamespace, load_catalog


class MmslConfig(BaseModel):
    """Options for one parse call. Frozen, so one instance can be shared by threads."""

    model_config = ConfigDict(frozen=True)

    # Validation
    strict: bool = Field(default=False)  # unknown cues and parameters become errors
    known_cues: Optional[frozenset[str]] = Field(default=None)
    catalog_path: Optional[Path] = Field(default=None)

    # Tempo defaults, used when the document has no header for them
    default_bpm: float = Field(default=DEFAULT_BPM, gt=0, allow_inf_nan=False)
    default_beats_per_bar: int = Field(default=DEFAULT_BEATS_PER_BAR, gt=0)

    # Overrides, win over document headers
    bpm: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    beats_per_bar: Optional[int] = Field(default=None, gt=0)

    # Input ceilings
    max_lines: Optional[int] = Field(default=10_000, gt=0)
    max_repeat: int = Field(default=DEFAULT_MAX_REPEAT, gt=0)  # per cue

    @classmethod
    def from_env(cls, **overrides) -> "MmslConfig":
        """Create config from environment variables; keyword arguments win.

        Raises ValueError (pydantic ValidationError included) for a malformed value.
        """
        values = {
            "strict": os.getenv("MMSL_STRICT", "false").lower() == "true",
            "default_bpm": float(os.getenv("MMSL_DEFAULT_BPM", DEFAULT_BPM)),
        }
        if os.getenv("MMSL_MAX_LINES"):
            values["max_lines"] = int(os.environ["MMSL_MAX_LINES"])
        if os.getenv("MMSL_MAX_REPEAT"):
            values["max_repeat"] = int(os.environ["MMSL_MAX_REPEAT"])
        if os.getenv("MMSL_CUE_CATALOG"):
            values["catalog_path"] = Path(os.environ["MMSL_CUE_CATALOG"])
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def namespace(self) -> CueNamespace | None:
        """Known cue names from *known_cues* and *catalog_path*, or None if neither is set.

        Raises InputError when the catalog file is unreadable.
        """
        if self.known_cues is None and self.catalog_path is None:
            return None
        names = set(self.known_cues or ())
        if self.catalog_path is not None:
            catalog = load_catalog(self.catalog_path)
            if not names:
                return catalog
            return catalog.with_names(names)
        return CueNamespace(names=names)
