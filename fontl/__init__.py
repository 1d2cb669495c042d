"""
fontl: Font Catalog Server

- Scans a directory tree for font files (.ttf/.otf/.woff/.woff2/.eot)
- Keeps per-font metadata in a `<font>.fontl.json` sidecar next to each file
- Serves font bytes at /fonts/{name}, @font-face CSS at /css/{name}, listing at / and /api/fonts
"""
from __future__ import annotations

from fontl.catalog import FontCatalog, is_font_file, sidecar_path
from fontl.content import content_type, generate_css
from fontl.errors import (
    CatalogIOError,
    DuplicateFontError,
    FontlError,
    NotFoundError,
    ValidationError,
)
from fontl.models import CatalogEntry, FontMetadata

__all__ = [
    "CatalogEntry",
    "CatalogIOError",
    "DuplicateFontError",
    "FontCatalog",
    "FontMetadata",
    "FontlError",
    "NotFoundError",
    "ValidationError",
    "content_type",
    "generate_css",
    "is_font_file",
    "sidecar_path",
]
