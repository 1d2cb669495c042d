from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


class FontlError(Exception):
    """Base class for catalog errors."""


class ValidationError(FontlError, ValueError):
    """Bad input shape: unsupported extension, missing field, malformed metadata."""


class DuplicateFontError(ValidationError):
    """Two font files share a base name (the catalog key)."""

    def __init__(self, filename: str, existing: PathLike, incoming: PathLike):
        self.filename = filename
        self.existing = Path(existing)
        self.incoming = Path(incoming)
        super().__init__(f"duplicate font name {filename!r}: {self.existing} and {self.incoming}")


class NotFoundError(FontlError, LookupError):
    """Unknown catalog key or missing font file."""


class CatalogIOError(FontlError):
    """Filesystem failure; `path` names the file or directory involved."""

    def __init__(self, message: str, path: Optional[PathLike] = None):
        self.path = Path(path) if path is not None else None
        super().__init__(f"{message}: {path}" if path is not None else message)
