import os
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(project_root)

from fontl.catalog import FontCatalog

FAKE_TTF = b"\x00\x01\x00\x00" + b"\x00" * 60


def write_font(path: Path, data: bytes = FAKE_TTF) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


@pytest.fixture
def font_dir(tmp_path):
    """Temp root with two fonts (one nested) and a non-font file."""
    root = tmp_path / "fonts"
    write_font(root / "Arial.ttf")
    write_font(root / "display" / "Foo-Bold.WOFF2", b"wOF2" + b"\x00" * 28)
    (root / "README.txt").write_text("not a font")
    return root


@pytest.fixture
def catalog(font_dir):
    cat = FontCatalog(font_dir)
    cat.load()
    return cat
