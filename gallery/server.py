from __future__ import annotations

import argparse
import random
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional

import requests
import uvicorn
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.logging_setup import get_logger
from common.types import ImageRecord
from common.utils import iso_now_ms
from gallery.aggregator import aggregate, decorate
from gallery.config import Settings, load_settings
from gallery.errors import GalleryError, UnexpectedError
from gallery.header_images import HeaderImagesService
from gallery.image_folder import ImageFolder
from gallery.sources import StaticSource


log = get_logger(__name__)

router = APIRouter()


@contextmanager
def _failure_label(label: str, **context: Any) -> Iterator[None]:
    """
    Give failures inside an endpoint its user-facing `error` label.
    Anything that is not a GalleryError is wrapped as UnexpectedError; the
    exception handlers in create_app() turn both into JSON responses.
    """
    try:
        yield
    except GalleryError as e:
        e.error = label
        e.context = {**context, **e.context}
        raise
    except Exception as e:
        raise UnexpectedError(str(e), error=label, context=context) from e


class _RouteCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that leaves `exclude_paths` alone; those routes set their own origin header."""

    def __init__(self, app: Any, exclude_paths: Iterable[str] = (), **kwargs: Any):
        super().__init__(app, **kwargs)
        self.exclude_paths = frozenset(exclude_paths)

    async def __call__(self, scope: Any, receive: Any, send: Any) -> None:
        if scope["type"] == "http" and scope.get("path") in self.exclude_paths:
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


def _state(request: Request) -> Any:
    return request.app.state


@router.get("/health")
def health(request: Request):
    st = _state(request)
    return {
        "status": "healthy",
        "timestamp": iso_now_ms(),
        "images_folder": st.settings.images_folder,
        "upstream": st.header_images.describe(),
    }


@router.get("/api/images")
def list_images(request: Request):
    """Image filenames found in the images folder, natural order."""
    st = _state(request)
    folder: ImageFolder = st.folder
    log.info("Scanning folder: %s", folder.root)
    with _failure_label("Failed to scan images", folder=st.settings.images_folder):
        records = aggregate(folder, ordering="natural", with_decoration=False)
    names = [r.filename for r in records]
    return {
        "images": names,
        "count": len(names),
        "folder": st.settings.images_folder,
        "timestamp": iso_now_ms(),
    }


@router.get("/api/images/details")
def image_details(request: Request):
    st = _state(request)
    with _failure_label("Failed to get image details"):
        infos = st.folder.details()
    return {"images": [i.to_dict() for i in infos], "count": len(infos)}


@router.get("/api/carousel")
def carousel(request: Request):
    """
    Carousel slides: the configured static table when it has entries, else the
    folder scan. Never fails; on any error a single fallback slide is returned.
    """
    st = _state(request)
    s: Settings = st.settings
    static: StaticSource = st.static_images
    source_name = "static" if len(static) else "folder"
    try:
        if s.carousel_shuffle:
            ordering = "shuffle"
        else:
            ordering = "order" if source_name == "static" else "natural"
        rng = random.Random(s.carousel_shuffle_seed) if s.carousel_shuffle_seed is not None else None
        records = aggregate(
            static if source_name == "static" else st.folder,
            ordering=ordering,
            rng=rng,
            captions=s.carousel_captions,
            base_url=s.images_base_url,
        )
        return {
            "images": [r.to_dict() for r in records],
            "meta": {
                "count": len(records),
                "source": source_name,
                "shuffled": ordering == "shuffle",
                "timestamp": iso_now_ms(),
            },
        }
    except Exception:
        log.exception("Carousel build failed; serving fallback image")
        fallback = decorate(
            [ImageRecord.from_descriptor(s.carousel_fallback)],
            captions=s.carousel_captions,
            base_url=s.images_base_url,
        )
        return {
            "images": [r.to_dict() for r in fallback],
            "meta": {
                "count": 1,
                "source": "fallback",
                "shuffled": False,
                "fallback": True,
                "timestamp": iso_now_ms(),
            },
        }


HEADER_IMAGES_PATH = "/api/header-images"


@router.get(HEADER_IMAGES_PATH)
def header_images(request: Request, selection: Optional[str] = Query(None, alias="set")):
    """
    Proxy the upstream header-images set. Items are returned as received, minus
    those without `image_url`/`url`/`filename` or outside their active window,
    sorted by `order`.
    """
    st = _state(request)
    s: Settings = st.settings
    with _failure_label("Failed to load images"):
        records = aggregate(st.header_images, selection=selection or None, ordering="order", with_decoration=False)
    return JSONResponse(
        [r.raw for r in records],
        headers={
            "Cache-Control": s.upstream_cache_control,
            "Access-Control-Allow-Origin": s.upstream_allow_origin,
        },
    )


def create_app(settings: Optional[Settings] = None, session: Optional[requests.Session] = None) -> FastAPI:
    """
    Build the API around `settings` (default: config file + env). `session` is
    handed to the upstream client, which lets tests substitute a fake.
    """
    settings = settings or load_settings()

    app = FastAPI(title="Header Image Gallery API", version="1.0.0")
    app.state.settings = settings
    app.state.folder = ImageFolder(
        settings.images_folder,
        extensions=settings.image_extensions,
        base_url=settings.images_base_url,
        max_workers=settings.stat_workers,
    )
    app.state.static_images = StaticSource(settings.carousel_images)
    app.state.header_images = HeaderImagesService(
        url=settings.upstream_url,
        timeout=settings.upstream_timeout_s,
        session=session,
    )

    app.add_middleware(
        _RouteCORSMiddleware,
        exclude_paths=[HEADER_IMAGES_PATH],
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(GalleryError)
    async def _gallery_error(request: Request, exc: GalleryError) -> JSONResponse:
        log.warning(
            "%s %s failed: %s",
            request.method,
            request.url.path,
            exc.message,
            extra={"extra": {"status": exc.status_code, "error": exc.error, "kind": type(exc).__name__}},
        )
        return JSONResponse(exc.to_payload(), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        log.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse({"error": "internal_error", "message": str(exc)}, status_code=500)

    app.include_router(router)
    return app


app = create_app()


def _parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Serve image lists for the carousel / header widget.")
    ap.add_argument("--config", default=None, help="YAML config (default: $GALLERY_CONFIG or config/gallery.yaml)")
    ap.add_argument("--host", default=None)
    ap.add_argument("--port", type=int, default=None)
    return ap.parse_args(argv)


# -------- local dev entrypoint --------
if __name__ == "__main__":
    args = _parse_args()
    cfg = load_settings(args.config)
    host = args.host or cfg.host
    port = args.port or cfg.port
    log.info("Images folder: %s", cfg.images_folder)
    log.info("API endpoint: http://localhost:%d/api/images", port)
    uvicorn.run(create_app(cfg), host=host, port=port)
