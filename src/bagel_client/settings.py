"""BAGEL client configuration settings.

Environment-based configuration for the inference server location and
HTTP timeouts. Values are read once, when the settings object is built.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "http://localhost:7865"


class BagelSettings(BaseSettings):
    """Configuration for the BAGEL client.

    All settings can be configured via environment variables or .env file.

    Attributes:
        base_url: Root URL of the inference server
        api_prefix: Path prefix of the queue and upload endpoints
        request_timeout: Timeout in seconds for connects, writes and
            non-streaming reads
        stream_timeout: Read timeout in seconds between SSE chunks, or None
            to wait indefinitely
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        alias="BAGEL_URL",
        description="Root URL of the BAGEL inference server",
    )
    api_prefix: str = Field(
        default="/gradio_api",
        alias="BAGEL_API_PREFIX",
        description="Path prefix of the queue and upload endpoints",
    )
    request_timeout: float = Field(
        default=30.0,
        alias="BAGEL_REQUEST_TIMEOUT",
        description="HTTP timeout in seconds for non-streaming operations",
    )
    stream_timeout: float | None = Field(
        default=None,
        alias="BAGEL_STREAM_TIMEOUT",
        description="Read timeout in seconds for event streams (None waits forever)",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            msg = f"Invalid base URL: {v}. Must start with http:// or https://"
            raise ValueError(msg)
        return v.rstrip("/")

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        """Normalize the prefix to a leading slash and no trailing slash."""
        v = v.strip("/")
        return f"/{v}" if v else ""

    def endpoint(self, name: str) -> str:
        """Build the absolute URL of a server endpoint.

        Args:
            name: Endpoint path below the API prefix (e.g. "queue/join").

        Returns:
            The absolute endpoint URL.
        """
        return f"{self.base_url}{self.api_prefix}/{name}"


_settings_instance: BagelSettings | None = None


def get_bagel_settings() -> BagelSettings:
    """Get default settings (singleton, reads from environment).

    Returns:
        BagelSettings instance.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = BagelSettings()
    return _settings_instance


def reset_settings() -> None:
    """Reset singleton (for testing)."""
    global _settings_instance
    _settings_instance = None
