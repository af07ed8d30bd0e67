"""Exception hierarchy for the BAGEL client.

All client errors inherit from BagelClientError so callers can catch every
failure of an operation with a single except clause, while still being able
to tell the failure modes apart.

Exception Hierarchy:
    BagelClientError (base for all client exceptions)
    ├── TransportError (network failure, stream read error, non-2xx status)
    ├── ProtocolError (server broke the queue/upload protocol)
    ├── FrameDecodeError (one SSE frame was not valid JSON; never surfaced)
    └── NoOutputError (job finished without an extractable result)

Usage:
    from bagel_client.exceptions import ProtocolError, TransportError

    try:
        result = await text_to_image(client, "A red bicycle")
    except ProtocolError:
        ...  # the server never produced a result
    except TransportError:
        ...  # the network died
"""

from __future__ import annotations

from typing import Any


class BagelClientError(Exception):
    """Base exception for all BAGEL client errors.

    Attributes:
        message: Human-readable error message.
        details: Additional context about the error (optional).
        error_code: Machine-readable error code (optional).
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        error_code: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Additional context as key-value pairs.
            error_code: Machine-readable error code.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.error_code = error_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary.

        Returns:
            Dictionary with error details suitable for JSON serialization.
        """
        result: dict[str, Any] = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.error_code:
            result["code"] = self.error_code
        if self.details:
            result["details"] = self.details
        return result


class TransportError(BagelClientError):
    """Network-level failure talking to the inference server.

    Raised for refused connections, errors while reading a stream and
    non-2xx HTTP responses. Never retried by the client.

    Example:
        >>> raise TransportError(
        ...     "Queue join failed",
        ...     url="http://localhost:7865/gradio_api/queue/join",
        ...     status_code=503,
        ... )
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        error_code: str | None = None,
    ) -> None:
        """Initialize transport error.

        Args:
            message: Description of the failure.
            url: Request URL, if known.
            status_code: HTTP status code, if a response was received.
            details: Additional context.
            error_code: Machine-readable error code.
        """
        details = details or {}
        if url:
            details["url"] = url
        if status_code:
            details["status_code"] = status_code
        super().__init__(
            message, details=details, error_code=error_code or "TRANSPORT_ERROR"
        )
        self.url = url
        self.status_code = status_code


class ProtocolError(BagelClientError):
    """The transport worked but the server violated the protocol.

    Typical cases are an event stream that ends before the terminal record
    arrives, or an upload progress stream that ends without ``done``.

    Attributes:
        stream_id: Session hash or upload id of the offending stream.
    """

    def __init__(
        self,
        message: str,
        *,
        stream_id: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: str | None = None,
    ) -> None:
        """Initialize protocol error.

        Args:
            message: Description of the violated expectation.
            stream_id: Session hash or upload id involved.
            details: Additional context.
            error_code: Machine-readable error code.
        """
        details = details or {}
        if stream_id:
            details["stream_id"] = stream_id
        super().__init__(
            message, details=details, error_code=error_code or "PROTOCOL_ERROR"
        )
        self.stream_id = stream_id


class FrameDecodeError(BagelClientError):
    """A single SSE frame could not be decoded.

    Only used inside the frame decoder, which logs and drops the frame.
    """

    def __init__(self, message: str, *, frame: str) -> None:
        """Initialize frame decode error.

        Args:
            message: Description of the decode failure.
            frame: The offending frame body, truncated for logging.
        """
        super().__init__(
            message,
            details={"frame": frame[:200]},
            error_code="FRAME_DECODE_ERROR",
        )
        self.frame = frame


class NoOutputError(BagelClientError):
    """A job completed but carried no usable output.

    Attributes:
        operation: Name of the operation that expected the output.
        server_error: Error message reported by the server, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        server_error: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize no-output error.

        Args:
            message: Description of the missing output.
            operation: Operation name (e.g. "text_to_image").
            server_error: Error text from the terminal record.
            details: Additional context.
        """
        details = details or {}
        if operation:
            details["operation"] = operation
        if server_error:
            details["server_error"] = server_error
        super().__init__(message, details=details, error_code="NO_OUTPUT")
        self.operation = operation
        self.server_error = server_error
