"""Restyle — FastAPI Application.

This module is the single entry point for the web application.  It defines
the application factory, all REST API routes, the module-level ``app``
instance and the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Configuration** comes from :class:`~restyle.core.config.RestyleConfig`.
- **Transformations** are run by a :class:`~restyle.core.executor.BatchExecutor`
  created in the application lifespan; one executor (and therefore one
  concurrency cap) is shared by all requests.
- **Gallery persistence** is the directory tree managed by
  :class:`~restyle.core.gallery_store.GalleryStore`; no database required.
- Each ``POST /api/transform`` call keeps its uploads, work units and results
  in local variables only; nothing is shared between submissions except the
  executor's semaphore and the gallery directory.

Endpoints
---------
========  ==========================================  ===========================
Method    Path                                        Purpose
========  ==========================================  ===========================
POST      ``/api/transform``                          Images × styles → results
GET       ``/api/gallery/{timestamp}``                Session listing by style
GET       ``/api/gallery/{timestamp}/{filter}/{fn}``  Raw stored image
GET       ``/api/galleries``                          All sessions, newest first
GET       ``/api/config``                             Frontend defaults
GET       ``/api/health``                             Liveness probe
========  ==========================================  ===========================

Usage
-----
CLI (installed entry point)::

    restyle

Direct invocation::

    python -m restyle.api.main
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import APIRouter, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from restyle import __version__
from restyle.api.models import (
    GalleryImage,
    GalleryListResponse,
    GalleryResponse,
    GallerySummary,
    TransformResponse,
    TransformResult,
)
from restyle.core.config import RestyleConfig, config
from restyle.core.errors import InvalidInputError, NotFoundError, PathTraversalError
from restyle.core.executor import BatchExecutor
from restyle.core.gallery_store import GalleryStore
from restyle.core.gemini import GeminiImageService
from restyle.core.invoker import ImageService, RetryPolicy, StyleTransformInvoker
from restyle.core.session import SessionIdentity
from restyle.core.tasks import build_work_units, infer_mime_type, source_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _viewer_url(session_id: str) -> str:
    return f"/?timestamp={session_id}"


def _parse_filters(raw: str) -> list[str]:
    """Decode the ``filters`` form field (a JSON array of style names).

    Raises:
        HTTPException: 400 if the field is not a JSON array of strings.
    """
    try:
        filters = json.loads(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="filters must be a JSON array of style names") from e
    if not isinstance(filters, list) or not all(isinstance(f, str) for f in filters):
        raise HTTPException(status_code=400, detail="filters must be a JSON array of style names")
    return filters


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@router.post("/transform", response_model=TransformResponse, response_model_exclude_none=True)
async def transform_images(
    request: Request,
    images: list[UploadFile] | None = File(default=None),
    filters: str | None = Form(default=None),
) -> TransformResponse:
    """Transform every uploaded image into every requested style.

    Individual (image, style) failures are reported inside ``results``; the
    request only fails as a whole for invalid input or an internal error.

    Returns:
        :class:`TransformResponse` with one result per (image, style) pair in
        file-major, style-minor order, the session id and the viewer URL.

    Raises:
        HTTPException: 400 for missing images or filters, malformed filters or
            too many images; 413 for an oversized image; 500 on an unexpected
            internal failure.
    """
    settings: RestyleConfig = request.app.state.settings

    if not images:
        raise HTTPException(status_code=400, detail="No images uploaded")
    if not filters:
        raise HTTPException(status_code=400, detail="No filters provided")
    if len(images) > settings.max_images:
        raise HTTPException(status_code=400, detail=f"At most {settings.max_images} images per request")

    style_names = _parse_filters(filters)

    sources = []
    for upload in images:
        # Read at most one byte past the limit.
        data = await upload.read(settings.max_upload_bytes + 1)
        if len(data) > settings.max_upload_bytes:
            raise HTTPException(status_code=413, detail=f"{upload.filename} exceeds the upload size limit")
        sources.append(source_image(data, upload.filename or "image.png"))

    try:
        units = build_work_units(sources, style_names)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    try:
        session_id = request.app.state.session_identity.new_id()
        executor: BatchExecutor = request.app.state.executor
        records = await executor.run(units, session_id)
    except Exception as e:
        logger.exception("Error in /api/transform")
        raise HTTPException(status_code=500, detail="Failed to process images") from e

    return TransformResponse(
        results=[TransformResult.from_record(record) for record in records],
        timestamp=session_id,
        gallery_url=_viewer_url(session_id),
    )


@router.get("/gallery/{timestamp}", response_model=GalleryResponse)
async def get_gallery(request: Request, timestamp: str) -> GalleryResponse:
    """Return the images of one session grouped by style.

    Raises:
        HTTPException: 400 for an unsafe timestamp, 404 if the session is unknown.
    """
    store: GalleryStore = request.app.state.store
    try:
        gallery = store.read_gallery(timestamp)
    except PathTraversalError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Gallery not found") from e

    return GalleryResponse(
        timestamp=timestamp,
        filters={
            style: [
                GalleryImage(
                    filename=entry.filename,
                    url=f"/api/gallery/{quote(timestamp)}/{quote(style)}/{quote(entry.filename)}",
                )
                for entry in entries
            ]
            for style, entries in gallery.styles.items()
        },
    )


@router.get("/gallery/{timestamp}/{filter_name}/{filename}")
async def get_gallery_image(request: Request, timestamp: str, filter_name: str, filename: str) -> Response:
    """Serve one stored image.

    Raises:
        HTTPException: 400 for an unsafe path component, 404 if not found.
    """
    store: GalleryStore = request.app.state.store
    try:
        data = store.read_image(timestamp, filter_name, filename)
    except PathTraversalError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Image not found") from e
    return Response(content=data, media_type=infer_mime_type(filename))


@router.get("/galleries", response_model=GalleryListResponse)
async def list_galleries(request: Request) -> GalleryListResponse:
    """List every stored session, most recent first."""
    store: GalleryStore = request.app.state.store
    return GalleryListResponse(
        galleries=[
            GallerySummary(timestamp=session_id, url=_viewer_url(session_id))
            for session_id in store.list_sessions()
        ]
    )


@router.get("/config")
async def get_config(request: Request) -> dict:
    """Return the settings the frontend needs on page load.

    Returns:
        Dictionary with keys ``version``, ``default_styles``, ``max_images``
        and ``max_upload_bytes``.
    """
    settings: RestyleConfig = request.app.state.settings
    return {
        "version": __version__,
        "default_styles": settings.default_styles,
        "max_images": settings.max_images,
        "max_upload_bytes": settings.max_upload_bytes,
    }


@router.get("/health")
async def health() -> dict:
    """Liveness probe."""
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(settings: RestyleConfig | None = None, service: ImageService | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration to use.  Defaults to the global ``config``.
        service: Image service override.  Defaults to a
            :class:`GeminiImageService` built from ``settings``.

    Returns:
        A configured :class:`FastAPI` instance.
    """
    settings = settings or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Wire the gallery store, invoker and executor onto ``app.state``."""
        image_service = service
        if image_service is None:
            if not settings.gemini_api_key:
                logger.warning("GEMINI_API_KEY is not set; transformations will fail.")
            image_service = GeminiImageService(settings.gemini_api_key, settings.gemini_model)

        invoker = StyleTransformInvoker(
            image_service,
            RetryPolicy(max_attempts=settings.max_attempts, backoff_base=settings.backoff_base),
            request_timeout=settings.request_timeout,
        )
        app.state.settings = settings
        app.state.store = GalleryStore(settings.outputs_dir)
        app.state.session_identity = SessionIdentity()
        app.state.executor = BatchExecutor(invoker, app.state.store, max_concurrency=settings.max_concurrency)
        logger.info(
            "Restyle ready (outputs=%s, max_concurrency=%d)", settings.outputs_dir, settings.max_concurrency
        )

        yield  # Application runs here.

        logger.info("Restyle shutting down.")

    app = FastAPI(
        title="Restyle",
        description="Re-render uploaded images in named art styles and browse results by session.",
        version=__version__,
        lifespan=lifespan,
    )

    # Allow cross-origin requests so the frontend can be served from a different
    # port during development.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~restyle.core.config.config` (which
    loads from ``RESTYLE_SERVER_HOST`` and ``RESTYLE_SERVER_PORT``
    environment variables).  Defaults to ``0.0.0.0:3000``.

    This function is registered as the ``restyle`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "restyle.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
