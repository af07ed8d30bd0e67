"""Async client for the BAGEL inference server job-queue protocol.

A job is submitted with a POST to ``queue/join`` and its progress is read
from the ``queue/data`` event stream of the same session hash. Images are
attached by uploading them first and waiting on the ``upload_progress``
stream until the server reports the file as materialized.
"""

from __future__ import annotations

import logging
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn

import httpx

from bagel_client.exceptions import ProtocolError, TransportError
from bagel_client.models import (
    EventKind,
    EventRecord,
    FileData,
    JobRequest,
    JobResult,
    SubmitAck,
)
from bagel_client.settings import BagelSettings, get_bagel_settings
from bagel_client.sse import decode_stream
from bagel_client.utils import (
    guess_mime_type,
    new_session_hash,
    new_trigger_id,
    new_upload_id,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from types import TracebackType

logger = logging.getLogger(__name__)


@dataclass
class JobStreamState:
    """Result accumulator for one job's event stream.

    Only ``apply`` changes the state, and nothing changes after the terminal
    record has resolved it.
    """

    session_hash: str
    event_id: str | None = None
    output_url: str | None = None
    output: Any = None
    success: bool = True
    error: str | None = None
    resolved: bool = False

    def apply(self, record: EventRecord) -> None:
        """Advance the state with the next record of the stream."""
        if self.resolved:
            return

        if record.kind in (EventKind.ESTIMATION, EventKind.PROCESS_STARTS):
            if record.event_id is not None:
                self.event_id = record.event_id
            logger.debug(
                "Job %s: %s (event %s)", self.session_hash, record.kind, self.event_id
            )
            return

        if record.kind != EventKind.PROCESS_COMPLETED:
            return

        self.success = record.payload.get("success", True) is not False
        output = record.output
        if output is not None:
            data = output.get("data")
            if isinstance(data, list) and data and data[0] is not None:
                self.output = data[0]
                if isinstance(self.output, dict):
                    self.output_url = self.output.get("url")
            error = output.get("error")
            if error:
                self.error = str(error)
        self.resolved = True

    def to_result(self) -> JobResult:
        """Freeze the state into a JobResult."""
        return JobResult(
            session_hash=self.session_hash,
            event_id=self.event_id,
            output_url=self.output_url,
            output=self.output,
            success=self.success,
            error=self.error,
        )


class BagelClient:
    """Client for the BAGEL job-queue protocol.

    Each call owns its own session hash or upload id, decoder and result
    state, so one client may run several jobs concurrently.

    Example:
        ```python
        async with BagelClient() as client:
            handle = await client.upload(Path("cat.png"))
            result = await client.run_job([...], fn_index=4)
        ```
    """

    def __init__(
        self,
        settings: BagelSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Optional settings. If not provided, reads from environment.
            http_client: Optional preconfigured httpx client. The caller keeps
                ownership and must close it.
        """
        self.settings = settings or get_bagel_settings()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.request_timeout)
        )
        self._stream_timeout = httpx.Timeout(
            self.settings.request_timeout, read=self.settings.stream_timeout
        )

        logger.info("Initialized BAGEL client for %s", self.settings.base_url)

    async def __aenter__(self) -> BagelClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    def _handle_http_error(self, error: httpx.HTTPError, action: str) -> NoReturn:
        """Convert httpx exceptions to TransportError.

        Args:
            error: Exception raised by httpx.
            action: What the client was doing, for the message.

        Raises:
            TransportError: Always.
        """
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            msg = f"{action} failed with HTTP {status}"
            raise TransportError(
                msg, url=str(error.request.url), status_code=status
            ) from error

        url = None
        try:
            url = str(error.request.url)
        except RuntimeError:
            pass
        msg = f"{action} failed: {error}"
        raise TransportError(msg, url=url) from error

    @asynccontextmanager
    async def _event_stream(
        self, endpoint: str, params: dict[str, str]
    ) -> AsyncIterator[AsyncIterator[EventRecord]]:
        """Open an SSE endpoint and yield its decoded records.

        Leaving the context closes the response, even if the server would
        keep sending.
        """
        url = self.settings.endpoint(endpoint)
        try:
            async with self._http.stream(
                "GET", url, params=params, timeout=self._stream_timeout
            ) as response:
                response.raise_for_status()
                async with aclosing(decode_stream(response.aiter_bytes())) as records:
                    yield records
        except httpx.HTTPError as e:
            self._handle_http_error(e, f"Reading {endpoint} stream")

    # =========================================================================
    # Job Submission
    # =========================================================================

    async def submit(self, request: JobRequest) -> SubmitAck:
        """Enqueue a job.

        The server only acknowledges the job here; its output arrives on
        the event stream read by ``await_result``.

        Args:
            request: The job request.

        Returns:
            The server's acknowledgement.

        Raises:
            TransportError: On network failure or a non-2xx response.
        """
        url = self.settings.endpoint("queue/join")
        try:
            response = await self._http.post(url, json=request.to_api_dict())
            response.raise_for_status()
        except httpx.HTTPError as e:
            self._handle_http_error(e, "Queue join")

        event_id = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("event_id") is not None:
            event_id = str(body["event_id"])

        logger.info(
            "Submitted job fn_index=%d session=%s event=%s",
            request.fn_index,
            request.session_hash,
            event_id,
        )
        return SubmitAck(session_hash=request.session_hash, event_id=event_id)

    async def await_result(self, session_hash: str) -> JobResult:
        """Read a job's event stream until its terminal record.

        Resolves on the first ``process_completed`` record and closes the
        stream without reading further.

        Args:
            session_hash: Session hash the job was submitted with.

        Returns:
            The job's terminal state.

        Raises:
            ProtocolError: If the stream ends before ``process_completed``.
            TransportError: If the stream fails.
        """
        state = JobStreamState(session_hash=session_hash)
        async with self._event_stream(
            "queue/data", {"session_hash": session_hash}
        ) as records:
            async for record in records:
                state.apply(record)
                if state.resolved:
                    break

        if not state.resolved:
            msg = "No output received: event stream ended before process_completed"
            raise ProtocolError(msg, stream_id=session_hash)

        logger.info(
            "Job session=%s event=%s completed (success=%s)",
            session_hash,
            state.event_id,
            state.success,
        )
        return state.to_result()

    async def run_job(
        self,
        data: list[Any],
        fn_index: int,
        session_hash: str | None = None,
    ) -> JobResult:
        """Submit a job and wait for its result.

        Args:
            data: Ordered positional arguments.
            fn_index: Server operation selector.
            session_hash: Session token. A fresh one is generated by default.

        Returns:
            The job's terminal state.
        """
        request = JobRequest(
            data=data,
            fn_index=fn_index,
            trigger_id=new_trigger_id(),
            session_hash=session_hash or new_session_hash(),
        )
        await self.submit(request)
        return await self.await_result(request.session_hash)

    # =========================================================================
    # Uploads
    # =========================================================================

    async def await_upload_done(self, upload_id: str) -> None:
        """Wait until the server reports an upload as complete.

        Args:
            upload_id: Id the upload was posted with.

        Raises:
            ProtocolError: If the stream ends before a ``done`` record.
            TransportError: If the stream fails.
        """
        async with self._event_stream(
            "upload_progress", {"upload_id": upload_id}
        ) as records:
            async for record in records:
                if record.kind == EventKind.DONE:
                    logger.debug("Upload %s done", upload_id)
                    return

        msg = "Upload progress stream ended without completion"
        raise ProtocolError(msg, stream_id=upload_id)

    async def upload(self, source: Path | bytes, filename: str | None = None) -> str:
        """Upload a file and wait until the server has materialized it.

        Args:
            source: Path to the file, or its raw bytes.
            filename: Filename sent to the server. Defaults to the path's
                name, or "upload.png" for raw bytes.

        Returns:
            The server-assigned path of the uploaded file.

        Raises:
            FileNotFoundError: If ``source`` is a missing path.
            ProtocolError: If the server returns no path or never confirms.
            TransportError: On network failure or a non-2xx response.
        """
        if isinstance(source, bytes):
            content = source
            name = filename or "upload.png"
        else:
            path = Path(source)
            if not path.exists():
                msg = f"Upload file not found: {path}"
                raise FileNotFoundError(msg)
            with open(path, "rb") as f:
                content = f.read()
            name = filename or path.name

        upload_id = new_upload_id()
        url = self.settings.endpoint("upload")
        try:
            response = await self._http.post(
                url,
                params={"upload_id": upload_id},
                files={"files": (name, content, guess_mime_type(Path(name)))},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            self._handle_http_error(e, "Upload")

        try:
            paths = response.json()
        except ValueError as e:
            msg = "Upload response is not valid JSON"
            raise ProtocolError(msg, stream_id=upload_id) from e
        if not isinstance(paths, list) or not paths or not isinstance(paths[0], str):
            msg = "Upload response did not contain a file path"
            raise ProtocolError(msg, stream_id=upload_id, details={"response": paths})

        await self.await_upload_done(upload_id)
        logger.info("Uploaded %s (%d bytes) as %s", name, len(content), paths[0])
        return paths[0]

    async def upload_image(
        self, source: Path | bytes, filename: str | None = None
    ) -> FileData:
        """Upload an image and build the file reference for a job request.

        Args:
            source: Path to the image, or its raw bytes.
            filename: Filename hint. Defaults as for ``upload``.

        Returns:
            FileData pointing at the uploaded file.
        """
        if filename is None and not isinstance(source, bytes):
            filename = Path(source).name
        name = filename or "upload.png"
        server_path = await self.upload(source, filename=name)
        return FileData(
            path=server_path,
            orig_name=name,
            mime_type=guess_mime_type(Path(name)),
        )

    # =========================================================================
    # Results
    # =========================================================================

    async def download(self, url: str) -> bytes:
        """Fetch a produced artefact.

        Args:
            url: Absolute URL, or a path relative to the server root.

        Returns:
            The response body.

        Raises:
            TransportError: On network failure or a non-2xx response.
        """
        if url.startswith("/"):
            url = f"{self.settings.base_url}{url}"
        try:
            response = await self._http.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self._handle_http_error(e, "Download")
        return response.content
