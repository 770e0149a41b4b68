"""
Local store schema definitions
Contains all CREATE TABLE and CREATE INDEX statements
"""

# Key/value documents, one JSON document per planner collection
CREATE_LOCAL_STORAGE_TABLE = """
    CREATE TABLE IF NOT EXISTS local_storage (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
"""

CREATE_LOCAL_STORAGE_UPDATED_INDEX = """
    CREATE INDEX IF NOT EXISTS idx_local_storage_updated
    ON local_storage(updated_at DESC)
"""

ALL_TABLES = [
    CREATE_LOCAL_STORAGE_TABLE,
]

ALL_INDEXES = [
    CREATE_LOCAL_STORAGE_UPDATED_INDEX,
]
