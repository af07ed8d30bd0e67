"""BAGEL inference server client.

An asyncio client for the job-queue protocol of the BAGEL Gradio demo:
jobs are submitted to a queue and their progress and output are read from
a server-sent-event stream.

Features:
    - Incremental SSE frame decoding, independent of chunk boundaries
    - Job submission and session-correlated result streaming
    - Image uploads confirmed through the upload progress stream
    - Text-to-image, image editing and image captioning adapters

Example:
    ```python
    import asyncio

    from bagel_client import BagelClient, text_to_image

    async def main():
        async with BagelClient() as client:
            result = await text_to_image(client, "A futuristic city at sunset")
            print(result.image_url)

    asyncio.run(main())
    ```
"""

from bagel_client.client import BagelClient, JobStreamState
from bagel_client.exceptions import (
    BagelClientError,
    FrameDecodeError,
    NoOutputError,
    ProtocolError,
    TransportError,
)
from bagel_client.models import (
    ANONYMOUS_SESSION,
    CaptionOptions,
    CaptionResult,
    EditImageOptions,
    EventKind,
    EventRecord,
    FileData,
    FnIndex,
    ImageResult,
    JobRequest,
    JobResult,
    SubmitAck,
    TextToImageOptions,
)
from bagel_client.operations import caption_image, edit_image, text_to_image
from bagel_client.settings import BagelSettings, get_bagel_settings, reset_settings
from bagel_client.sse import SSEDecoder, decode_stream, parse_frame
from bagel_client.utils import split_thinking

__all__ = [
    "ANONYMOUS_SESSION",
    "BagelClient",
    "BagelClientError",
    "BagelSettings",
    "CaptionOptions",
    "CaptionResult",
    "EditImageOptions",
    "EventKind",
    "EventRecord",
    "FileData",
    "FnIndex",
    "FrameDecodeError",
    "ImageResult",
    "JobRequest",
    "JobResult",
    "JobStreamState",
    "NoOutputError",
    "ProtocolError",
    "SSEDecoder",
    "SubmitAck",
    "TextToImageOptions",
    "TransportError",
    "caption_image",
    "decode_stream",
    "edit_image",
    "get_bagel_settings",
    "parse_frame",
    "reset_settings",
    "split_thinking",
    "text_to_image",
]

__version__ = "0.1.0"
