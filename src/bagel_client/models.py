"""Pydantic models and type definitions for the BAGEL queue protocol.

Covers the decoded event records, the job-submit request, the file
reference used for image inputs and the per-operation option sets.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Type aliases for option values accepted by the server
ImageRatio = Literal["1:1", "4:3", "3:4", "16:9", "9:16"]
RenormType = Literal["global", "local", "text_channel"]

IMAGE_RATIOS: list[ImageRatio] = ["1:1", "4:3", "3:4", "16:9", "9:16"]

# Session token shared by every caller that does not pick its own
ANONYMOUS_SESSION = "anonymous"

FILE_DATA_TYPE = "gradio.FileData"


class EventKind(str, Enum):
    """Known values of the ``msg`` discriminator of an event record."""

    ESTIMATION = "estimation"
    PROCESS_STARTS = "process_starts"
    PROCESS_GENERATING = "process_generating"
    PROCESS_COMPLETED = "process_completed"
    HEARTBEAT = "heartbeat"
    PROGRESS = "progress"
    LOG = "log"
    CLOSE_STREAM = "close_stream"
    DONE = "done"


class FnIndex(int, Enum):
    """Server-side operation selectors."""

    TEXT_TO_IMAGE = 1
    EDIT_IMAGE = 3
    CAPTION_IMAGE = 4


class EventRecord(BaseModel):
    """A decoded SSE message.

    Attributes:
        kind: Raw ``msg`` value; compare against EventKind members
        event_id: Correlation id sent once the job is estimated or started
        payload: The complete decoded JSON object
    """

    kind: str = ""
    event_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> EventRecord:
        """Build a record from a decoded ``data:`` object."""
        event_id = payload.get("event_id")
        return cls(
            kind=str(payload.get("msg", "")),
            event_id=str(event_id) if event_id is not None else None,
            payload=payload,
        )

    @property
    def output(self) -> dict[str, Any] | None:
        """The ``output`` object of a completion record, if any."""
        output = self.payload.get("output")
        return output if isinstance(output, dict) else None


class FileData(BaseModel):
    """File reference embedded in a job request for an uploaded image."""

    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(description="Server-assigned path returned by the upload")
    orig_name: str | None = Field(default=None, description="Original filename hint")
    mime_type: str | None = Field(default=None, description="MIME type hint")
    type_marker: str = Field(default=FILE_DATA_TYPE, alias="_type")

    def to_api_dict(self) -> dict[str, Any]:
        """Convert to the structure the server expects.

        Returns:
            Dictionary for the positional data list.
        """
        return {
            "meta": {"_type": self.type_marker},
            "_type": self.type_marker,
            "mime_type": self.mime_type,
            "orig_name": self.orig_name,
            "path": self.path,
        }


class JobRequest(BaseModel):
    """A queue-join request.

    Attributes:
        data: Ordered positional arguments; order is the wire contract
        fn_index: Server operation selector
        trigger_id: Nonce, not used for correlation
        session_hash: Token identifying the job's event stream
    """

    data: list[Any]
    fn_index: int
    trigger_id: int = 0
    session_hash: str = ANONYMOUS_SESSION

    def to_api_dict(self) -> dict[str, Any]:
        """Convert to the queue/join request body."""
        return {
            "data": self.data,
            "event_data": None,
            "fn_index": self.fn_index,
            "trigger_id": self.trigger_id,
            "session_hash": self.session_hash,
        }


class SubmitAck(BaseModel):
    """Acknowledgement returned by queue/join."""

    session_hash: str
    event_id: str | None = None


class JobResult(BaseModel):
    """Terminal state of one job stream."""

    session_hash: str
    event_id: str | None = None
    output_url: str | None = None
    output: Any = None
    success: bool = True
    error: str | None = None


class ImageResult(BaseModel):
    """Result of an image-producing operation."""

    image_url: str
    event_id: str | None = None


class CaptionResult(BaseModel):
    """Result of a text-producing operation.

    Attributes:
        think: Reasoning section, or None when the model did not emit one
        text: The answer with any reasoning section removed
    """

    think: str | None = None
    text: str


class _Options(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TextToImageOptions(_Options):
    """Options for text-to-image generation."""

    show_thinking: bool = False
    cfg_text_scale: float = 4.0
    cfg_interval: float = 0.4
    timestep_shift: float = 3.0
    num_timesteps: int = 50
    cfg_renorm_min: float = 0.0
    cfg_renorm_type: RenormType = "global"
    max_think_token_n: int = 2048
    do_sample: bool = False
    text_temperature: float = 0.3
    seed: int = 0
    image_ratio: ImageRatio = "1:1"

    def to_positional(self, prompt: str) -> list[Any]:
        """Build the positional data list for fn_index 1."""
        return [
            prompt,
            self.show_thinking,
            self.cfg_text_scale,
            self.cfg_interval,
            self.timestep_shift,
            self.num_timesteps,
            self.cfg_renorm_min,
            self.cfg_renorm_type,
            self.max_think_token_n,
            self.do_sample,
            self.text_temperature,
            self.seed,
            self.image_ratio,
        ]


class EditImageOptions(_Options):
    """Options for image editing."""

    show_thinking: bool = False
    cfg_text_scale: float = 4.0
    cfg_img_scale: float = 2.0
    cfg_interval: float = 0.0
    timestep_shift: float = 3.0
    num_timesteps: int = 50
    cfg_renorm_min: float = 0.0
    cfg_renorm_type: RenormType = "text_channel"
    max_think_token_n: int = 1024
    do_sample: bool = False
    text_temperature: float = 0.3
    seed: int = 0

    def to_positional(self, image: FileData, prompt: str) -> list[Any]:
        """Build the positional data list for fn_index 3."""
        return [
            image.to_api_dict(),
            prompt,
            self.show_thinking,
            self.cfg_text_scale,
            self.cfg_img_scale,
            self.cfg_interval,
            self.timestep_shift,
            self.num_timesteps,
            self.cfg_renorm_min,
            self.cfg_renorm_type,
            self.max_think_token_n,
            self.do_sample,
            self.text_temperature,
            self.seed,
        ]


class CaptionOptions(_Options):
    """Options for image captioning and visual question answering."""

    show_thinking: bool = False
    do_sample: bool = False
    text_temperature: float = 0.3
    max_new_tokens: int = 2048

    def to_positional(self, image: FileData, prompt: str) -> list[Any]:
        """Build the positional data list for fn_index 4."""
        return [
            image.to_api_dict(),
            prompt,
            self.show_thinking,
            self.do_sample,
            self.text_temperature,
            self.max_new_tokens,
        ]
