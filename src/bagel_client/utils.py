"""Utility functions for the BAGEL client."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from bagel_client.models import CaptionResult

if TYPE_CHECKING:
    from pathlib import Path

THINK_OPEN = "<think>\n"
THINK_CLOSE = "</think>\n"

MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def new_session_hash() -> str:
    """Return a fresh session token for one job stream."""
    return secrets.token_hex(8)


def new_upload_id() -> str:
    """Return a fresh id correlating an upload with its progress stream."""
    return secrets.token_hex(8)


def new_trigger_id() -> int:
    """Return a trigger nonce in the range the web UI uses."""
    return secrets.randbelow(1000)


def guess_mime_type(image_path: Path) -> str:
    """Get the MIME type for an image path from its suffix.

    Args:
        image_path: Path to the image file.

    Returns:
        MIME type string, "image/png" for unknown suffixes.

    """
    return MIME_TYPES.get(image_path.suffix.lower(), "image/png")


def split_thinking(output: str) -> CaptionResult:
    """Split model text into its reasoning section and final answer.

    The reasoning section is opened by ``<think>\\n`` and closed by
    ``</think>\\n``. Without a closing marker the whole string is the answer.

    Args:
        output: Raw text output of a text-producing job.

    Returns:
        CaptionResult with ``think`` set only when a reasoning section exists.

    """
    parts = output.split(THINK_CLOSE)
    if len(parts) == 1:
        return CaptionResult(think=None, text=output)
    return CaptionResult(think=parts[0].replace(THINK_OPEN, "", 1), text=parts[-1])
