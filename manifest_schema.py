"""
mod.json schema for the mod lifecycle engine.

Every installed mod has a ``mod.json`` marker file at the root of its
directory. The manager reads it while indexing installed mods and while
inspecting archives; repository listings use the same shape for remote mods.

Only the fields the lifecycle engine needs are modelled. Content sections
(objects, schemas, translations...) are kept as extra keys and left to the
content loader.

Example:

{
    "name": "Extra Towns",
    "version": "1.2",
    "modType": "Town",
    "depends": ["core-graphics"],
    "conflicts": ["old-towns"],
    "compatibility": {"min": "1.4", "max": "1.5"}
}
"""

from __future__ import annotations

import json
import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MOD_FILENAME = "mod.json"

MOD_TYPES = frozenset(
    {
        "AI", "Artifacts", "Creatures", "Expansion", "Graphical", "Heroes",
        "Interface", "Maps", "Mechanics", "Music", "Objects", "Other", "Skills",
        "Sounds", "Spells", "Templates", "Test", "Town", "Translation", "Utility",
    }
)

_log = logging.getLogger(__name__)


def normalize_mod_id(name: str) -> str:
    """Return the canonical (lowercase, dot-delimited) form of a mod id."""
    normalized = name.strip().lower()
    if not normalized or any(not part for part in normalized.split(".")):
        raise ValueError(f"Invalid mod identifier {name!r}")
    return normalized


def parse_version(v: str) -> tuple[int, ...]:
    """Parse ``"1.4.2"`` into ``(1, 4, 2)``; non-numeric parts count as 0."""
    parts: list[int] = []
    for chunk in v.strip().split("."):
        digits = "".join(ch for ch in chunk if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return tuple(parts)


class CompatibilityRange(BaseModel):
    """Application versions a mod declares itself compatible with."""

    min: str = ""
    max: str = ""

    def satisfied(self, app_version: tuple[int, ...]) -> bool:
        if self.min:
            low = parse_version(self.min)
            width = max(len(low), len(app_version))
            if _pad(app_version, width) < _pad(low, width):
                return False
        if self.max:
            # "1.5" accepts every 1.5.x release
            high = parse_version(self.max)
            if _pad(app_version, len(high))[: len(high)] > high:
                return False
        return True


def _pad(version: tuple[int, ...], width: int) -> tuple[int, ...]:
    return version + (0,) * (width - len(version))


class ModFile(BaseModel):
    """Parsed contents of a mod.json file."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    name: str = ""
    description: str = ""
    author: str = ""
    version: str = ""
    mod_type: str = "Other"
    contact: str = ""
    license_name: str = ""
    download_size: float = 0
    depends: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)
    compatibility: CompatibilityRange = Field(default_factory=CompatibilityRange)
    keep_disabled: bool = False

    @field_validator("depends", "conflicts")
    @classmethod
    def _normalize_ids(cls, v: list[str]) -> list[str]:
        seen: list[str] = []
        for entry in v:
            mod_id = normalize_mod_id(entry)
            if mod_id not in seen:
                seen.append(mod_id)
        return seen

    @field_validator("mod_type")
    @classmethod
    def _known_type(cls, v: str) -> str:
        if v not in MOD_TYPES:
            _log.warning("Unknown modType %r, treating it as 'Other'", v)
            return "Other"
        return v


def parse_mod_file(data: bytes | str) -> ModFile:
    """Parse raw JSON into a ModFile.

    Raises ``pydantic.ValidationError`` if the data is invalid.
    Raises ``json.JSONDecodeError`` if the bytes are not valid JSON.
    """
    return ModFile.model_validate(json.loads(data))
