from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from types import MappingProxyType
from typing import BinaryIO, Dict, List, Mapping, Union

from common.logging_setup import get_logger
from fontl.errors import CatalogIOError, DuplicateFontError, NotFoundError, ValidationError
from fontl.models import CatalogEntry, FontMetadata, validate_display_name

logger = get_logger(__name__)

FONT_EXTENSIONS = (".ttf", ".otf", ".woff", ".woff2", ".eot")
SIDECAR_SUFFIX = ".fontl.json"
SIDECAR_MODE = 0o644
DUPLICATE_POLICIES = ("error", "overwrite")

PathLike = Union[str, Path]


def is_font_file(path: PathLike) -> bool:
    """Font-file predicate: extension check only, case-insensitive."""
    return os.path.splitext(str(path))[1].lower() in FONT_EXTENSIONS


def sidecar_path(font_path: PathLike) -> Path:
    p = Path(font_path)
    return p.with_name(p.name + SIDECAR_SUFFIX)


def read_sidecar(path: Path) -> FontMetadata:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CatalogIOError("cannot read metadata", path) from e
    try:
        doc = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CatalogIOError(f"malformed metadata JSON ({e.msg} at line {e.lineno})", path) from e
    try:
        return FontMetadata.from_dict(doc)
    except ValidationError as e:
        raise ValidationError(f"{e}: {path}") from e


def write_sidecar(path: Path, metadata: FontMetadata) -> None:
    """Write the full document to a temp file beside `path`, then atomically replace it."""
    data = json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False) + "\n"
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=".", suffix=".tmp", dir=str(path.parent))
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        # mkstemp creates 0600
        os.chmod(tmp_name, SIDECAR_MODE)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise CatalogIOError("cannot write metadata", path) from e


class FontCatalog:
    """
    Scans a directory tree for font files and indexes them by base filename.

        root/
          ├─ Arial.ttf
          ├─ Arial.ttf.fontl.json      (sidecar metadata, created on first sight)
          └─ display/
              ├─ Foo-Bold.woff2
              └─ Foo-Bold.woff2.fontl.json

    The sidecars are the durable state; the index is a cache over them. All index
    mutation and sidecar writes happen under one lock, and readers get snapshots.
    """

    def __init__(self, root: PathLike = ".", *, on_duplicate: str = "error"):
        if on_duplicate not in DUPLICATE_POLICIES:
            raise ValidationError(f"on_duplicate must be one of {DUPLICATE_POLICIES}, got {on_duplicate!r}")
        self.root = Path(root).absolute()
        self.on_duplicate = on_duplicate
        self._index: Dict[str, CatalogEntry] = {}
        self._lock = threading.RLock()

    # -------- public API --------

    def load(self) -> int:
        """
        Rebuild the index with one full scan; returns the number of fonts found.
        Any failure aborts the whole load and leaves the index empty.
        """
        with self._lock:
            self._index = {}
            if not self.root.is_dir():
                raise CatalogIOError("font directory does not exist or is not a directory", self.root)
            index: Dict[str, CatalogEntry] = {}
            for font_path in self._walk():
                entry = self._load_entry(font_path)
                prev = index.get(entry.filename)
                if prev is not None:
                    if self.on_duplicate == "error":
                        raise DuplicateFontError(entry.filename, prev.path, entry.path)
                    logger.warning(
                        "duplicate font name, later file wins",
                        extra={"extra": {"filename": entry.filename, "dropped": str(prev.path), "kept": str(entry.path)}},
                    )
                index[entry.filename] = entry
            self._index = index
        logger.info(f"Loaded {len(index)} fonts from {self.root}")
        return len(index)

    def add_font(self, path: PathLike, metadata: FontMetadata) -> CatalogEntry:
        """
        Register a font that is already on disk at `path` and write its sidecar.
        The file is never moved or copied.
        """
        font_path = Path(path).absolute()
        if not is_font_file(font_path):
            raise ValidationError(f"file is not a supported font type: {font_path.name}")
        if not font_path.is_file():
            raise NotFoundError(f"font file does not exist: {font_path}")
        validate_display_name(metadata.name)

        entry = CatalogEntry(filename=font_path.name, path=font_path, metadata=metadata)
        with self._lock:
            prev = self._index.get(entry.filename)
            if prev is not None and prev.path != font_path:
                raise DuplicateFontError(entry.filename, prev.path, font_path)
            write_sidecar(sidecar_path(font_path), metadata)
            self._index[entry.filename] = entry
        logger.info(f"Added font {entry.filename}", extra={"extra": {"path": str(font_path)}})
        return entry

    def update_metadata(self, filename: str, metadata: FontMetadata) -> CatalogEntry:
        """Replace a known font's metadata and rewrite its sidecar in full (no merging)."""
        with self._lock:
            prev = self._index.get(filename)
            if prev is None:
                raise NotFoundError(f"font not found in catalog: {filename}")
            validate_display_name(metadata.name)
            write_sidecar(sidecar_path(prev.path), metadata)
            entry = CatalogEntry(filename=prev.filename, path=prev.path, metadata=metadata)
            self._index[filename] = entry
        logger.info(f"Updated metadata for {filename}")
        return entry

    def remove_font(self, filename: str) -> CatalogEntry:
        """Unregister a font and delete its sidecar; the font file itself is left alone."""
        with self._lock:
            entry = self._index.get(filename)
            if entry is None:
                raise NotFoundError(f"font not found in catalog: {filename}")
            meta_path = sidecar_path(entry.path)
            try:
                meta_path.unlink(missing_ok=True)
            except OSError as e:
                raise CatalogIOError("cannot delete metadata", meta_path) from e
            del self._index[filename]
        logger.info(f"Removed font {filename}")
        return entry

    def get_fonts(self) -> Mapping[str, FontMetadata]:
        """Read-only snapshot: filename -> metadata. Order is not meaningful."""
        with self._lock:
            snapshot = {k: e.metadata for k, e in self._index.items()}
        return MappingProxyType(snapshot)

    def entries(self) -> List[CatalogEntry]:
        with self._lock:
            return list(self._index.values())

    def get_entry(self, filename: str) -> CatalogEntry:
        with self._lock:
            entry = self._index.get(filename)
        if entry is None:
            raise NotFoundError(f"font not found in catalog: {filename}")
        return entry

    def resolve_path(self, name: str) -> Path:
        """
        Index lookup first; otherwise `name` is taken relative to the root so files
        not yet indexed can still be served. Paths escaping the root are not found.
        """
        with self._lock:
            entry = self._index.get(name)
        if entry is not None:
            return entry.path
        root = self.root.resolve()
        try:
            candidate = (root / name).resolve()
        except (OSError, ValueError) as e:
            raise NotFoundError(f"invalid font path: {name!r}") from e
        if not candidate.is_relative_to(root) or candidate == root:
            raise NotFoundError(f"path escapes font directory: {name}")
        return candidate

    def open_font(self, name: str) -> BinaryIO:
        """Open the font for reading. The caller owns the stream and must close it."""
        path = self.resolve_path(name)
        try:
            return path.open("rb")
        except OSError as e:
            raise NotFoundError(f"cannot open font {name}: {path}") from e

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def __contains__(self, filename: object) -> bool:
        with self._lock:
            return filename in self._index

    # -------- internals --------

    def _walk(self):
        """Yield font files under root in sorted, platform-independent order."""

        def _onerror(err: OSError) -> None:
            raise CatalogIOError("cannot scan font directory", err.filename or self.root) from err

        for dirpath, dirnames, filenames in os.walk(self.root, onerror=_onerror):
            dirnames.sort()
            for fn in sorted(filenames):
                p = Path(dirpath, fn)
                if is_font_file(p) and p.is_file():
                    yield p

    def _load_entry(self, font_path: Path) -> CatalogEntry:
        meta_path = sidecar_path(font_path)
        if meta_path.exists():
            metadata = read_sidecar(meta_path)
        else:
            metadata = FontMetadata()
            write_sidecar(meta_path, metadata)
            logger.debug(f"Created sidecar for {font_path.name}", extra={"extra": {"path": str(meta_path)}})
        return CatalogEntry(filename=font_path.name, path=font_path, metadata=metadata)
