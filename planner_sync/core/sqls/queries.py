"""
Local store query SQL statements
Contains all SELECT, INSERT, UPDATE, DELETE statements
"""

SELECT_ITEM = """
    SELECT value FROM local_storage
    WHERE key = ?
"""

SELECT_ALL_KEYS = """
    SELECT key FROM local_storage
    ORDER BY key
"""

UPSERT_ITEM = """
    INSERT INTO local_storage (key, value, updated_at)
    VALUES (?, ?, CURRENT_TIMESTAMP)
    ON CONFLICT(key) DO UPDATE SET
        value = excluded.value,
        updated_at = CURRENT_TIMESTAMP
"""

DELETE_ITEM = """
    DELETE FROM local_storage
    WHERE key = ?
"""
