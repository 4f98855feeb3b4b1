from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict, List
import yaml

from modl.configuration.ai_settings import AISettings
from modl.moderation.moderation_orchestrator import DEFAULT_CHAT_TICKET_CATEGORIES
from modl.moderation.punishment_service import AI_ISSUER_NAME, DEFAULT_IMMEDIATE_ORDINALS
from modl.util.logger import get_logger

logger = get_logger("app_configuration")


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml``, exposes dictionary-like
    access helpers, and resolves AI-specific settings through :class:`AISettings`.
    Uses fcntl file locks for safe concurrent access across processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, key: str) -> Dict[str, Any]:
        value = self._data.get(key, {})
        return value if isinstance(value, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        The returned dict is the internal cache (shallow reference). Callers
        should not mutate it.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        """SQLite file holding players, tickets, settings and the audit log."""
        value = self._section("database").get("path") or "./data/modl.db"
        return Path(str(value))

    @property
    def ai_settings(self) -> AISettings:
        """Return the AI settings wrapped in an AISettings helper."""
        return AISettings(self._section("ai_settings"))

    @property
    def issuer_name(self) -> str:
        """Issuer recorded on punishments created by the automated pipeline."""
        return str(self._section("moderation").get("issuer_name") or AI_ISSUER_NAME)

    @property
    def analysis_worker_count(self) -> int:
        return max(1, int(self._section("moderation").get("worker_count", 2)))

    @property
    def analysis_queue_size(self) -> int:
        """Maximum number of pending analyses; 0 means unbounded."""
        return max(0, int(self._section("moderation").get("queue_size", 100)))

    @property
    def chat_ticket_categories(self) -> List[str]:
        """Ticket categories/types whose transcripts are sent for analysis."""
        value = self._section("moderation").get("chat_ticket_categories")
        if not isinstance(value, list) or not value:
            return list(DEFAULT_CHAT_TICKET_CATEGORIES)
        return [str(item).lower() for item in value]

    @property
    def immediate_ordinals(self) -> List[int]:
        """Punishment ordinals that start when issued instead of on acknowledgment."""
        value = self._section("moderation").get("immediate_ordinals")
        if not isinstance(value, list):
            return list(DEFAULT_IMMEDIATE_ORDINALS)
        return [int(item) for item in value]


