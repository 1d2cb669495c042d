from __future__ import annotations

import os
from typing import Any, Dict, List, Mapping
from urllib.parse import quote

from fontl.models import FontMetadata, strip_forbidden

FONT_URL_PREFIX = "/fonts/"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES: Dict[str, str] = {
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".eot": "application/vnd.ms-fontobject",
}


def content_type(filename: str) -> str:
    """MIME type by extension (case-insensitive); unknown extensions are generic binary."""
    return CONTENT_TYPES.get(os.path.splitext(filename)[1].lower(), DEFAULT_CONTENT_TYPE)


def css_family(name: str) -> str:
    # Derived names come straight from filenames, which never went through validation
    return strip_forbidden(name)


def font_url(filename: str) -> str:
    return FONT_URL_PREFIX + quote(filename)


def generate_css(filename: str, metadata: FontMetadata) -> str:
    """
    Minimal @font-face rule for one catalog entry:

        @font-face { font-family: 'Arial'; src: url('/fonts/Arial.ttf'); }
    """
    family = css_family(metadata.display_name(filename))
    return f"@font-face {{ font-family: '{family}'; src: url('{font_url(filename)}'); }}"


def font_listing(fonts: Mapping[str, FontMetadata]) -> List[Dict[str, Any]]:
    """
    Listing records for the index page and /api/fonts, sorted by display name
    (filename breaks ties so the order is total).
    """
    rows = [
        {
            "name": meta.display_name(filename),
            "filename": filename,
            "metadata": meta.to_dict(),
            "css": generate_css(filename, meta),
        }
        for filename, meta in fonts.items()
    ]
    rows.sort(key=lambda r: (r["name"], r["filename"]))
    return rows
