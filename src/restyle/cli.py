"""Single-image command-line transformer.

Applies one free-form instruction to one image with the same retry policy
as the web service, and saves the result next to the input as
``{stem}-transformed-{timestamp}.png``.

Usage::

    restyle-transform photo.jpg "Remove the girl in the background"
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from restyle.core.config import RestyleConfig, config
from restyle.core.gemini import GeminiImageService
from restyle.core.invoker import ImageService, RetryPolicy, StyleTransformInvoker
from restyle.core.models import Failure
from restyle.core.tasks import source_image

logger = logging.getLogger(__name__)


def transformed_path(image_path: Path, moment: datetime) -> Path:
    """Return the output path for ``image_path`` transformed at ``moment``.

    The timestamp is ``moment`` in UTC with millisecond precision, e.g.
    ``photo-transformed-2025-12-23T14-30-45-123Z.png``.
    """
    moment = moment.astimezone(timezone.utc)
    stamp = f"{moment:%Y-%m-%dT%H-%M-%S}-{moment.microsecond // 1000:03d}Z"
    return image_path.with_name(f"{image_path.stem}-transformed-{stamp}.png")


async def transform_file(
    image_path: Path,
    prompt: str,
    service: ImageService,
    settings: RestyleConfig = config,
) -> Path:
    """Transform one image file and write the result beside it.

    Raises:
        FileNotFoundError: If ``image_path`` does not exist.
        RuntimeError: If every attempt failed.
        OSError: If the input cannot be read or the output cannot be written.
    """
    if not image_path.is_file():
        raise FileNotFoundError(f"Image not found: {image_path}")

    invoker = StyleTransformInvoker(
        service,
        RetryPolicy(max_attempts=settings.max_attempts, backoff_base=settings.backoff_base),
        request_timeout=settings.request_timeout,
    )
    outcome = await invoker.invoke_prompt(source_image(image_path.read_bytes(), image_path.name), prompt)
    if isinstance(outcome, Failure):
        raise RuntimeError(outcome.message)

    output_path = transformed_path(image_path, datetime.now(timezone.utc))
    output_path.write_bytes(outcome.image_bytes)
    return output_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="restyle-transform",
        description="Transform a single image with a free-form prompt.",
    )
    parser.add_argument("image", type=Path, help="Path to the source image")
    parser.add_argument("prompt", help='Instruction, e.g. "Remove the girl in the background"')
    return parser


def main(argv: list[str] | None = None, service: ImageService | None = None) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    print(f"Image: {args.image}")
    print(f"Prompt: {args.prompt}")

    service = service or GeminiImageService(config.gemini_api_key, config.gemini_model)
    try:
        output_path = asyncio.run(transform_file(args.image, args.prompt, service))
    except (OSError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Success! Image saved to: {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
