"""Core functionality for style transformation and gallery storage.

This module provides the core components of Restyle:

- **Task expansion** (tasks.py): images × styles → ordered work units
- **Invocation** (invoker.py): one transformation with a retry state machine
- **Gemini adapter** (gemini.py): the external image service
- **Batch execution** (executor.py): bounded, settle-all fan-out
- **Gallery store** (gallery_store.py): session-scoped on-disk outputs
- **Session identity** (session.py): time-ordered session ids
- **RestyleConfig** (config.py): configuration using Pydantic Settings

Usage Example
-------------
    import asyncio

    from restyle.core import (
        BatchExecutor,
        GalleryStore,
        GeminiImageService,
        SessionIdentity,
        StyleTransformInvoker,
        build_work_units,
        config,
        source_image,
    )

    store = GalleryStore(config.outputs_dir)
    invoker = StyleTransformInvoker(GeminiImageService(config.gemini_api_key))
    executor = BatchExecutor(invoker, store, max_concurrency=config.max_concurrency)

    units = build_work_units([source_image(data, "cat.jpg")], ["Oil Painting", "Pop Art"])
    results = asyncio.run(executor.run(units, SessionIdentity().new_id()))
"""

from restyle.core.config import RestyleConfig, config
from restyle.core.executor import BatchExecutor
from restyle.core.gallery_store import GalleryStore
from restyle.core.gemini import GeminiImageService
from restyle.core.invoker import RetryPolicy, StyleTransformInvoker
from restyle.core.session import SessionIdentity
from restyle.core.tasks import build_work_units, source_image

__all__ = [
    "BatchExecutor",
    "GalleryStore",
    "GeminiImageService",
    "RestyleConfig",
    "RetryPolicy",
    "SessionIdentity",
    "StyleTransformInvoker",
    "build_work_units",
    "config",
    "source_image",
]
