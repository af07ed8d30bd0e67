"""Incremental decoder for the server-sent-event streams of the queue API.

Frames look like ``data: {json}`` and are separated by a blank line. Chunks
may split a frame anywhere, including inside a multi-byte UTF-8 sequence,
so the decoder buffers until the separator arrives and only then parses.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import TYPE_CHECKING

from bagel_client.exceptions import FrameDecodeError
from bagel_client.models import EventRecord

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

logger = logging.getLogger(__name__)

FRAME_SEPARATOR = "\n\n"
DATA_PREFIX = "data: "


def parse_frame(frame: str) -> EventRecord | None:
    """Parse one complete frame.

    Args:
        frame: Frame text without the trailing separator.

    Returns:
        The decoded record, or None for frames without a ``data:`` prefix
        (comments, keep-alives).

    Raises:
        FrameDecodeError: If the data is not a JSON object.
    """
    if not frame.startswith(DATA_PREFIX):
        return None

    body = frame[len(DATA_PREFIX) :]
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        msg = f"Invalid JSON in event frame: {e}"
        raise FrameDecodeError(msg, frame=body) from e

    if not isinstance(payload, dict):
        msg = f"Event frame is not a JSON object: {type(payload).__name__}"
        raise FrameDecodeError(msg, frame=body)

    return EventRecord.from_payload(payload)


class SSEDecoder:
    """Stateful frame decoder for one stream.

    Example:
        ```python
        decoder = SSEDecoder()
        for chunk in chunks:
            for record in decoder.feed(chunk):
                handle(record)
        decoder.close()
        ```
    """

    def __init__(self) -> None:
        """Initialize an empty decoder."""
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.dropped = 0

    def feed(self, chunk: bytes | str) -> list[EventRecord]:
        """Add a chunk and decode every frame it completes.

        Args:
            chunk: Raw bytes or text received from the stream.

        Returns:
            Records for the completed frames, in arrival order. Malformed
            frames are logged and skipped.
        """
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        else:
            # Bytes held back from an earlier chunk precede this text.
            self._buffer += self._utf8.decode(b"", final=True)
        self._buffer += chunk

        frames = self._buffer.split(FRAME_SEPARATOR)
        self._buffer = frames.pop()

        records = []
        for frame in frames:
            try:
                record = parse_frame(frame)
            except FrameDecodeError as e:
                self.dropped += 1
                logger.warning("Dropping event frame: %s", e.message)
                continue
            if record is not None:
                records.append(record)
        return records

    def close(self) -> None:
        """Signal end of stream and discard any unterminated remainder."""
        remainder = self._buffer + self._utf8.decode(b"", final=True)
        if remainder.strip():
            logger.debug(
                "Discarding %d bytes of unterminated event data", len(remainder)
            )
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text buffered for a frame that has not been terminated yet."""
        return self._buffer


async def decode_stream(
    chunks: AsyncIterable[bytes | str],
) -> AsyncIterator[EventRecord]:
    """Decode an async chunk stream into event records.

    The iterator is lazy and single-use; it ends when the chunk stream ends.

    Args:
        chunks: Chunks in arrival order, e.g. ``response.aiter_bytes()``.

    Yields:
        Decoded records in arrival order.
    """
    decoder = SSEDecoder()
    try:
        async for chunk in chunks:
            for record in decoder.feed(chunk):
                yield record
    finally:
        decoder.close()
