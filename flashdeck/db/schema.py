"""
Defines the database schema for flashdeck using a SQL string constant.
This keeps the schema definition separate from the database connection and
operation logic.
"""

DB_SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS deck_states (
        category_id VARCHAR PRIMARY KEY,
        payload VARCHAR NOT NULL,
        updated_at TIMESTAMP NOT NULL
    );

    CREATE SEQUENCE IF NOT EXISTS review_session_seq;

    CREATE TABLE IF NOT EXISTS review_sessions (
        session_id INTEGER PRIMARY KEY DEFAULT nextval('review_session_seq'),
        session_uuid UUID NOT NULL UNIQUE,
        category VARCHAR NOT NULL,
        kind VARCHAR NOT NULL,
        started_at TIMESTAMP NOT NULL,
        ended_at TIMESTAMP,
        easy INTEGER NOT NULL DEFAULT 0,
        medium INTEGER NOT NULL DEFAULT 0,
        hard INTEGER NOT NULL DEFAULT 0
    );
"""

DROP_TABLES_SQL = """
    DROP TABLE IF EXISTS review_sessions CASCADE;
    DROP SEQUENCE IF EXISTS review_session_seq;
    DROP TABLE IF EXISTS deck_states CASCADE;
"""
