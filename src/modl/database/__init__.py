"""
Database package for modl.

Provides the shared SQLite connection, schema creation and default seeding.

Public API:
    - Database: Connection lifecycle, schema and seed coordinator
    - ConnectionManager: Serialised-write wrapper around one aiosqlite connection
"""
