"""Configuration management for the org chart explorer."""

import json
import logging
import sys
from typing import Annotated, Any

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .models import APIConfiguration, ConfigurationError


class ServerConfig(BaseSettings):
    """Settings read from ``ORGCHART_*`` environment variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_prefix="ORGCHART_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_base_url: str = "http://localhost:3000/api"
    api_key: SecretStr | None = None
    # Round-robin pool for root pages; order matters (page 1 -> first entry).
    root_endpoints: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["/departments2", "/departments3"]
    )
    children_path: str = "/departments"
    create_path: str = "/departments"
    timeout: float = 30.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    rate_limit_delay: float = 0.25
    log_level: str = "INFO"
    export_dir: str = "."

    @field_validator("root_endpoints", mode="before")
    @classmethod
    def _split_endpoints(cls, value: Any) -> Any:
        """Accept a JSON list or a comma separated string."""
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                return json.loads(text)
            return [part.strip() for part in text.split(",") if part.strip()]
        return value

    def get_api_config(self) -> APIConfiguration:
        """Build the client configuration, rejecting an empty endpoint pool."""
        if not self.root_endpoints:
            raise ConfigurationError(
                "ORGCHART_ROOT_ENDPOINTS is empty; at least one root endpoint is required"
            )
        return APIConfiguration(
            base_url=self.api_base_url,
            api_key=self.api_key,
            root_endpoints=list(self.root_endpoints),
            children_path=self.children_path,
            create_path=self.create_path,
            timeout=self.timeout,
            max_retries=self.max_retries,
            retry_base_delay=self.retry_base_delay,
            rate_limit_delay=self.rate_limit_delay,
        )


def setup_logging(level: str = "INFO") -> None:
    """Route the logging module to stderr (stdout is reserved for stdio transports)."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    has_console = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in root.handlers
    )
    if not has_console:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
