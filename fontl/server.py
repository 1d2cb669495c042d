"""
HTTP surface for the font catalog.

Run:
  python -m fontl.server --dir ./fonts --port 8080
  # or with the app factory
  uvicorn --factory fontl.server:app_from_env --port 8080
"""

from __future__ import annotations

import argparse
import html
import os
import shutil
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional
from urllib.parse import quote

import uvicorn
from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response, StreamingResponse

from common.logging_setup import get_logger, setup_logging
from common.utils import parse_flag, split_csv
from fontl.catalog import FontCatalog, is_font_file
from fontl.config import DEFAULT_CONFIG_PATH, ServerConfig, load_config
from fontl.content import content_type, css_family, font_listing, font_url, generate_css
from fontl.errors import CatalogIOError, DuplicateFontError, FontlError, NotFoundError, ValidationError
from fontl.models import FontMetadata, validate_display_name

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024

# (status, public error kind) per error class; most specific first
_ERROR_STATUS = (
    (DuplicateFontError, 409, "conflict"),
    (ValidationError, 400, "invalid_request"),
    (NotFoundError, 404, "not_found"),
    (CatalogIOError, 500, "storage_error"),
    (FontlError, 500, "internal"),
)


def _error_status(exc: FontlError):
    for cls, status, kind in _ERROR_STATUS:
        if isinstance(exc, cls):
            return status, kind
    return 500, "internal"


def _iter_stream(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    # Closed on every exit path, including client disconnect (generator close)
    try:
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        stream.close()


def _metadata_from_form(
    name: str, source: str, commercial_use: Optional[str], projects: str, tags: str
) -> FontMetadata:
    return FontMetadata(
        name=name.strip(),
        source=source.strip(),
        commercial_use=parse_flag(commercial_use),
        projects=split_csv(projects),
        tags=split_csv(tags),
    )


def render_index(rows: List[dict]) -> str:
    """Plain HTML listing; every interpolated value is escaped."""
    esc = html.escape
    styles = "\n".join(r["css"] for r in rows)
    items = []
    for r in rows:
        meta = r["metadata"]
        pills = "".join(f'<span class="tag">{esc(t)}</span>' for t in meta["tags"])
        projects = "".join(f'<span class="project">{esc(p)}</span>' for p in meta["projects"])
        items.append(
            f'<li class="font" data-filename="{esc(r["filename"])}">'
            f'<h2 style="font-family: \'{esc(css_family(r["name"]))}\'">{esc(r["name"])}</h2>'
            f'<p class="filename"><a href="{esc(font_url(r["filename"]))}">{esc(r["filename"])}</a>'
            f' · <a href="/css/{esc(quote(r["filename"]))}">css</a></p>'
            f'<p class="source">{esc(meta["source"])}</p>'
            f'<p class="commercial">{"commercial use OK" if meta["commercial_use"] else "non-commercial"}</p>'
            f"<div>{projects}</div><div>{pills}</div>"
            "</li>"
        )
    return (
        "<!DOCTYPE html>\n<html><head><meta charset=\"utf-8\"><title>Fonts</title>\n"
        f"<style>\n{styles}\n</style></head>\n<body><h1>Fonts ({len(rows)})</h1>\n"
        f"<ul class=\"fonts\">{''.join(items)}</ul>\n</body></html>\n"
    )


def get_catalog(request: Request) -> FontCatalog:
    return request.app.state.catalog


def create_app(catalog: FontCatalog, config: Optional[ServerConfig] = None) -> FastAPI:
    """Build the app around an already-loaded catalog (injected, never global)."""
    app = FastAPI(title="fontl", version="0.1.0")
    app.state.catalog = catalog
    app.state.config = config or ServerConfig(font_dir=str(catalog.root))

    @app.exception_handler(FontlError)
    def _fontl_error(request: Request, exc: FontlError) -> JSONResponse:
        status, kind = _error_status(exc)
        # Full detail (paths) stays in the log; the body is generic
        log = logger.error if status >= 500 else logger.info
        log(
            f"{request.method} {request.url.path} -> {status}: {exc}",
            extra={"extra": {"path": str(getattr(exc, "path", "") or "")}},
        )
        return JSONResponse({"error": kind}, status_code=status)

    @app.exception_handler(Exception)
    def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"{request.method} {request.url.path} failed")
        return JSONResponse({"error": "internal"}, status_code=500)

    @app.get("/health")
    def health(catalog: FontCatalog = Depends(get_catalog)):
        return {"status": "ok", "fonts": len(catalog), "root": catalog.root.name}

    @app.get("/", response_class=HTMLResponse)
    def index(catalog: FontCatalog = Depends(get_catalog)):
        return HTMLResponse(render_index(font_listing(catalog.get_fonts())))

    @app.get("/api/fonts")
    def api_fonts(catalog: FontCatalog = Depends(get_catalog)):
        return font_listing(catalog.get_fonts())

    @app.get("/fonts/{name:path}")
    def serve_font(name: str, catalog: FontCatalog = Depends(get_catalog)):
        if not name:
            raise ValidationError("font name required")
        stream = catalog.open_font(name)
        return StreamingResponse(_iter_stream(stream), media_type=content_type(name))

    @app.get("/css/{name}")
    def serve_css(name: str, catalog: FontCatalog = Depends(get_catalog)):
        meta = catalog.get_fonts().get(name)
        if meta is None:
            raise NotFoundError(f"font not in catalog: {name}")
        return Response(content=generate_css(name, meta), media_type="text/css")

    @app.post("/upload")
    def upload(
        fontFile: Optional[UploadFile] = File(None),
        fontName: str = Form(""),
        source: str = Form(""),
        commercialUse: Optional[str] = Form(None),
        projects: str = Form(""),
        tags: str = Form(""),
        catalog: FontCatalog = Depends(get_catalog),
    ):
        if fontFile is None or not fontFile.filename:
            raise ValidationError("fontFile is required")
        # Client-supplied names may carry directories (or Windows separators)
        filename = os.path.basename(fontFile.filename.replace("\\", "/"))
        if not filename or not is_font_file(filename):
            raise ValidationError(f"invalid font file type: {fontFile.filename!r}")
        metadata = _metadata_from_form(fontName, source, commercialUse, projects, tags)
        validate_display_name(metadata.name)

        dest = catalog.root / filename
        if dest.exists():
            raise DuplicateFontError(filename, dest, dest)
        try:
            with dest.open("xb") as out:
                shutil.copyfileobj(fontFile.file, out, CHUNK_SIZE)
        except FileExistsError as e:
            raise DuplicateFontError(filename, dest, dest) from e
        except OSError as e:
            dest.unlink(missing_ok=True)
            raise CatalogIOError("cannot save uploaded font", dest) from e

        try:
            catalog.add_font(dest, metadata)
        except FontlError:
            dest.unlink(missing_ok=True)
            raise
        logger.info(f"Uploaded font {filename}")
        return RedirectResponse("/", status_code=303)

    @app.post("/edit")
    def edit(
        filename: str = Form(""),
        fontName: str = Form(""),
        source: str = Form(""),
        commercialUse: Optional[str] = Form(None),
        projects: str = Form(""),
        tags: str = Form(""),
        catalog: FontCatalog = Depends(get_catalog),
    ):
        if not filename.strip():
            raise ValidationError("filename is required")
        metadata = _metadata_from_form(fontName, source, commercialUse, projects, tags)
        catalog.update_metadata(filename.strip(), metadata)
        return RedirectResponse("/", status_code=303)

    return app


def build_app(config: ServerConfig) -> FastAPI:
    """Load the catalog from `config.font_dir`; load errors propagate (refuse to serve)."""
    catalog = FontCatalog(config.font_dir, on_duplicate=config.on_duplicate)
    catalog.load()
    return create_app(catalog, config)


def app_from_env() -> FastAPI:
    """Factory for `uvicorn --factory`; reads config file + FONTL_* env."""
    config = load_config(os.environ.get("FONTL_CONFIG", DEFAULT_CONFIG_PATH))
    setup_logging(config.log_level)
    return build_app(config)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Serve a directory of fonts with metadata and CSS")
    ap.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="YAML config file (optional)")
    ap.add_argument("--dir", dest="font_dir", default=None, help="Directory containing fonts (env FONTL_DIR)")
    ap.add_argument("--host", default=None, help="Bind address (env FONTL_HOST)")
    ap.add_argument("--port", type=int, default=None, help="Port to listen on (env FONTL_PORT)")
    ap.add_argument(
        "--on-duplicate",
        choices=["error", "overwrite"],
        default=None,
        help="What to do when two font files share a base name",
    )
    ap.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR (env LOG_LEVEL)")
    args = ap.parse_args(argv)

    config = load_config(
        args.config,
        overrides={
            "font_dir": args.font_dir,
            "host": args.host,
            "port": args.port,
            "on_duplicate": args.on_duplicate,
            "log_level": args.log_level,
        },
    )
    setup_logging(config.log_level)

    try:
        app = build_app(config)
    except FontlError as e:
        logger.error(f"Failed to load fonts: {e}")
        return 1

    logger.info(f"Starting server on {config.host}:{config.port}, serving fonts from {Path(config.font_dir).absolute()}")
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_config=None,
        timeout_graceful_shutdown=max(1, int(config.shutdown_grace_s)),
    )
    logger.info("Server stopped")
    return 0


# -------- local dev entrypoint --------
if __name__ == "__main__":
    raise SystemExit(main())
