"""Operation adapters for the BAGEL demo server.

Each adapter maps a prompt, an optional image and a typed option set onto
the positional data list and fn_index of one server operation, runs the job
and shapes its output. Any image is uploaded, and its upload confirmed,
before the job referencing it is submitted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bagel_client.exceptions import NoOutputError
from bagel_client.models import (
    CaptionOptions,
    CaptionResult,
    EditImageOptions,
    FnIndex,
    ImageResult,
    JobResult,
    TextToImageOptions,
)
from bagel_client.utils import split_thinking

if TYPE_CHECKING:
    from pathlib import Path

    from bagel_client.client import BagelClient

logger = logging.getLogger(__name__)


def _image_result(result: JobResult, operation: str) -> ImageResult:
    if not result.output_url:
        msg = "No image URL received"
        raise NoOutputError(msg, operation=operation, server_error=result.error)
    return ImageResult(image_url=result.output_url, event_id=result.event_id)


async def text_to_image(
    client: BagelClient,
    prompt: str,
    options: TextToImageOptions | None = None,
) -> ImageResult:
    """Generate an image from a text prompt.

    Args:
        client: Client connected to the server.
        prompt: Text description of the image.
        options: Generation options. Defaults apply when omitted.

    Returns:
        ImageResult with the URL of the generated image.

    Raises:
        NoOutputError: If the job completed without an image.
    """
    options = options or TextToImageOptions()
    logger.info(
        "Generating image (ratio %s, seed %d)", options.image_ratio, options.seed
    )
    result = await client.run_job(
        options.to_positional(prompt), fn_index=FnIndex.TEXT_TO_IMAGE
    )
    return _image_result(result, "text_to_image")


async def edit_image(
    client: BagelClient,
    image: Path | bytes,
    prompt: str,
    options: EditImageOptions | None = None,
) -> ImageResult:
    """Edit an image according to a text instruction.

    Args:
        client: Client connected to the server.
        image: Source image path or bytes.
        prompt: Editing instruction.
        options: Editing options. Defaults apply when omitted.

    Returns:
        ImageResult with the URL of the edited image.

    Raises:
        NoOutputError: If the job completed without an image.
    """
    options = options or EditImageOptions()
    file_data = await client.upload_image(image)
    result = await client.run_job(
        options.to_positional(file_data, prompt), fn_index=FnIndex.EDIT_IMAGE
    )
    return _image_result(result, "edit_image")


async def caption_image(
    client: BagelClient,
    image: Path | bytes,
    prompt: str,
    options: CaptionOptions | None = None,
) -> CaptionResult:
    """Ask the model about an image.

    Args:
        client: Client connected to the server.
        image: Image path or bytes.
        prompt: Question or captioning instruction.
        options: Text generation options. Defaults apply when omitted.

    Returns:
        CaptionResult, with the reasoning split off when the model emitted one.

    Raises:
        NoOutputError: If the job completed without text.
    """
    options = options or CaptionOptions()
    file_data = await client.upload_image(image)
    result = await client.run_job(
        options.to_positional(file_data, prompt), fn_index=FnIndex.CAPTION_IMAGE
    )
    if not result.output or not isinstance(result.output, str):
        msg = "No text received"
        raise NoOutputError(msg, operation="caption_image", server_error=result.error)
    return split_thinking(result.output)
