"""
Database schema initialization and migration management.

Players own an append-only punishment history: a punishment is one row of
``punishments`` and a pardon or duration change is one row of
``punishment_modifications``. Appending therefore never rewrites the player
record. Timestamps are INTEGER unix milliseconds (UTC).
"""

import aiosqlite
from modl.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates tables, indexes and schema version tracking."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create or update all database tables and indexes.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        """Create all required database tables."""
        await db.execute("""
            CREATE TABLE IF NOT EXISTS players (
                uuid TEXT PRIMARY KEY,
                pending_notifications TEXT NOT NULL DEFAULT '[]',
                created_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS player_usernames (
                player_uuid TEXT NOT NULL,
                username TEXT NOT NULL COLLATE NOCASE,
                first_seen INTEGER NOT NULL,
                PRIMARY KEY (player_uuid, username),
                FOREIGN KEY (player_uuid) REFERENCES players(uuid) ON DELETE CASCADE
            )
        """)

        # seq keeps insertion order stable for punishments issued in the same millisecond
        await db.execute("""
            CREATE TABLE IF NOT EXISTS punishments (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                player_uuid TEXT NOT NULL,
                type_ordinal INTEGER NOT NULL,
                issuer_name TEXT NOT NULL,
                issued_at INTEGER NOT NULL,
                started_at INTEGER,
                data TEXT NOT NULL DEFAULT '{}',
                attached_ticket_ids TEXT NOT NULL DEFAULT '[]',
                FOREIGN KEY (player_uuid) REFERENCES players(uuid) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS punishment_modifications (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                punishment_id TEXT NOT NULL,
                type TEXT NOT NULL,
                issuer_name TEXT NOT NULL,
                issued_at INTEGER NOT NULL,
                effective_duration INTEGER,
                reason TEXT,
                FOREIGN KEY (punishment_id) REFERENCES punishments(id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS tickets (
                id TEXT PRIMARY KEY,
                category TEXT NOT NULL DEFAULT '',
                type TEXT NOT NULL DEFAULT '',
                reported_player TEXT,
                reported_player_uuid TEXT,
                chat_messages TEXT NOT NULL DEFAULT '[]',
                data TEXT NOT NULL DEFAULT '{}',
                analysis_state TEXT,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            )
        """)

        # Key/value settings document (punishment catalog, thresholds, AI settings)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS system_prompts (
                strictness_level TEXT PRIMARY KEY,
                prompt TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS audit_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at INTEGER NOT NULL,
                description TEXT NOT NULL,
                level TEXT NOT NULL DEFAULT 'info',
                source TEXT NOT NULL DEFAULT 'system'
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        """Create indexes for the lookups the engine performs."""
        await db.execute("CREATE INDEX IF NOT EXISTS idx_player_usernames_name ON player_usernames(username COLLATE NOCASE)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_punishments_player ON punishments(player_uuid, seq)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_modifications_punishment ON punishment_modifications(punishment_id, issued_at)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_tickets_state ON tickets(analysis_state)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_audit_logs_created ON audit_logs(created_at DESC)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        """Update schema version tracking."""
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
