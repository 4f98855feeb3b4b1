import os
from typing import Any, Dict


class AISettings:
    """Helper exposing typed accessors for the generative-text service configuration.

    Wraps the ``ai_settings`` section of ``app_config.yml``; missing keys fall
    back to the defaults of each property.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    @property
    def enabled(self) -> bool:
        return bool(self.data.get("enabled", True))

    @property
    def base_url(self) -> str | None:
        val = self.data.get("base_url")
        return str(val) if val else None

    @property
    def model_name(self) -> str:
        return str(self.data.get("model_name") or "gpt-4o-mini")

    @property
    def api_key_env(self) -> str:
        return str(self.data.get("api_key_env") or "MODL_AI_API_KEY")

    @property
    def api_key(self) -> str | None:
        """The service key, read from the environment variable named by ``api_key_env``."""
        return os.getenv(self.api_key_env) or self.data.get("api_key") or None

    @property
    def temperature(self) -> float:
        return float(self.data.get("temperature", 0.1))

    @property
    def top_p(self) -> float:
        return float(self.data.get("top_p", 0.8))

    @property
    def max_tokens(self) -> int:
        return int(self.data.get("max_tokens", 1024))

    @property
    def request_timeout_seconds(self) -> float:
        return float(self.data.get("request_timeout_seconds", 30.0))

    @property
    def max_retries(self) -> int:
        # A single bounded retry unless configured otherwise; never negative
        return max(0, int(self.data.get("max_retries", 1)))

    @property
    def retry_backoff_seconds(self) -> float:
        return float(self.data.get("retry_backoff_seconds", 2.0))
