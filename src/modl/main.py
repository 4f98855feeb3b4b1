"""
modl Moderation Engine
======================

Runtime entry point for the punishment escalation and automated chat
moderation engine. Wires the SQLite store, the settings provider, the
punishment service, the chat analysis client and the analysis queue
together, then keeps the analysis workers running until interrupted.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. MODL_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the repository root.
    """
    if env_home := os.getenv("MODL_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

import asyncio
from dataclasses import dataclass

from dotenv import load_dotenv

from modl.ai.chat_analysis_client import ChatAnalysisClient
from modl.ai.prompt_assembler import PromptAssembler
from modl.configuration.app_configuration import AppConfig
from modl.configuration.settings_provider import DatabaseSettingsProvider, SettingsProvider
from modl.database.database import Database
from modl.moderation.moderation_orchestrator import AIModerationService
from modl.moderation.punishment_service import PunishmentService
from modl.services.analysis_queue_service import AnalysisQueueService
from modl.util.logger import get_logger, handle_exception

logger = get_logger("main")


@dataclass
class Runtime:
    """Every long-lived component of a running engine."""

    config: AppConfig
    database: Database
    settings: SettingsProvider
    punishment_service: PunishmentService
    prompt_assembler: PromptAssembler
    chat_client: ChatAnalysisClient
    queue: AnalysisQueueService
    moderation: AIModerationService

    async def start(self) -> bool:
        """Open the store, seed defaults and resume unfinished analyses."""
        if not await self.database.initialize():
            return False
        await self.prompt_assembler.initialize_default_prompts()

        if not self.config.ai_settings.enabled:
            logger.warning("AI moderation is disabled in the configuration; tickets will not be analyzed.")
        elif not await self.chat_client.test_connection():
            logger.warning("Chat analysis endpoint is not responding; analyses will fail until it recovers.")

        if self.config.ai_settings.enabled:
            await self.moderation.recover_pending()
        return True

    async def shutdown(self) -> None:
        try:
            await self.queue.shutdown()
        except Exception as exc:
            logger.exception("Error during analysis queue shutdown: %s", exc)
        await self.database.shutdown()
        logger.info("Shutdown complete.")


def build_runtime(
    config: AppConfig | None = None,
    chat_client: ChatAnalysisClient | None = None,
) -> Runtime:
    """Compose the engine from configuration. Nothing is opened until ``Runtime.start``.

    Parameters
    ----------
    config:
        Application configuration; ``config/app_config.yml`` under the base
        directory when omitted.
    chat_client:
        Pre-built analysis client, e.g. one wrapping a custom ``AsyncOpenAI``.

    Returns
    -------
    Runtime
        The wired, not yet started, runtime.
    """
    if config is None:
        config_path = Path(os.getenv("MODL_CONFIG") or BASE_DIR / "config" / "app_config.yml")
        config = AppConfig(config_path)

    db_path = config.database_path
    if not db_path.is_absolute():
        db_path = BASE_DIR / db_path

    database = Database(db_path)
    settings = DatabaseSettingsProvider(database.connection)
    punishment_service = PunishmentService(
        database.connection,
        settings,
        ai_issuer_name=config.issuer_name,
        immediate_ordinals=config.immediate_ordinals,
    )
    prompt_assembler = PromptAssembler(database.connection)
    chat_client = chat_client or ChatAnalysisClient(config.ai_settings)
    queue = AnalysisQueueService(
        worker_count=config.analysis_worker_count,
        queue_size=config.analysis_queue_size,
    )
    moderation = AIModerationService(
        database.connection,
        settings,
        punishment_service,
        chat_client,
        prompt_assembler,
        queue,
        chat_ticket_categories=config.chat_ticket_categories,
        issuer_name=config.issuer_name,
    )
    return Runtime(
        config=config,
        database=database,
        settings=settings,
        punishment_service=punishment_service,
        prompt_assembler=prompt_assembler,
        chat_client=chat_client,
        queue=queue,
        moderation=moderation,
    )


async def async_main() -> int:
    """Start the runtime and keep it alive until cancelled, returning an exit code."""
    load_dotenv(dotenv_path=BASE_DIR / ".env")

    try:
        runtime = build_runtime()
    except Exception as exc:
        logger.critical("Failed to build runtime: %s", exc)
        return 1

    try:
        if not await runtime.start():
            logger.critical("Failed to initialize database at %s", runtime.database.db_path)
            return 1
        logger.info("Moderation engine running; press Ctrl+C to stop.")
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Runtime cancelled; proceeding to shutdown")
    finally:
        await runtime.shutdown()
    return 0


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process code."""
    sys.excepthook = handle_exception
    logger.info("Starting modl moderation engine…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the engine: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
