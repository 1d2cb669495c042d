from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from common.utils import strip_extension
from fontl.errors import ValidationError


# Characters that would let a display name escape a quoted CSS string or an HTML attribute
FORBIDDEN_NAME_CHARS = frozenset("'\"\\<>;{}")


def _is_forbidden(ch: str) -> bool:
    return ch in FORBIDDEN_NAME_CHARS or ord(ch) < 0x20 or ord(ch) == 0x7F


def validate_display_name(name: str) -> str:
    """Reject names that cannot be interpolated into CSS as-is; returns `name` unchanged."""
    bad = sorted({ch for ch in name if _is_forbidden(ch)})
    if bad:
        raise ValidationError(f"font name contains forbidden characters: {''.join(bad)!r}")
    return name


def strip_forbidden(name: str) -> str:
    return "".join(ch for ch in name if not _is_forbidden(ch))


def _str_tuple(values: Optional[Iterable[Any]], field_name: str) -> Tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, (str, bytes, dict)):
        raise ValidationError(f"{field_name} must be a list of strings")
    out = tuple(values)
    for v in out:
        if not isinstance(v, str):
            raise ValidationError(f"{field_name} must be a list of strings")
    return out


@dataclass(frozen=True, slots=True)
class FontMetadata:
    """
    Metadata stored in a font's sidecar file.

    Attributes:
        name: display name; empty means "derive from filename" (see display_name).
        source: free-text provenance or license URL.
        commercial_use: whether the license allows commercial use.
        projects, tags: ordered string sequences (kept as tuples, so values are immutable).
    """
    name: str = ""
    source: str = ""
    commercial_use: bool = False
    projects: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not isinstance(self.source, str):
            raise ValidationError("name and source must be strings")
        if not isinstance(self.commercial_use, bool):
            raise ValidationError("commercial_use must be a boolean")
        # frozen: normalise lists through object.__setattr__
        object.__setattr__(self, "projects", _str_tuple(self.projects, "projects"))
        object.__setattr__(self, "tags", _str_tuple(self.tags, "tags"))

    def display_name(self, filename: str) -> str:
        """Effective display name: `name` if set, else the filename without its extension."""
        return self.name or strip_extension(filename)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "source": self.source,
            "commercial_use": self.commercial_use,
            "projects": list(self.projects),
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "FontMetadata":
        """
        Build from a decoded sidecar document. Unknown keys are ignored; missing
        keys and JSON null take the field default.
        """
        if not isinstance(data, dict):
            raise ValidationError("metadata document must be a JSON object")

        def _get(key: str, default: Any) -> Any:
            v = data.get(key)
            return default if v is None else v

        return cls(
            name=_get("name", ""),
            source=_get("source", ""),
            commercial_use=_get("commercial_use", False),
            projects=_get("projects", ()),
            tags=_get("tags", ()),
        )


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """Index entry: base filename (the key), absolute path, and metadata."""
    filename: str
    path: Path
    metadata: FontMetadata

    @property
    def display_name(self) -> str:
        return self.metadata.display_name(self.filename)
