"""Schema definition and exceptions for autoflow storage."""

from __future__ import annotations


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------


class StorageError(Exception):
    """Base exception for storage operations."""

    pass


class IntegrityError(StorageError):
    """Raised when a database constraint is violated."""

    pass


class NotFoundError(StorageError):
    """Raised when a requested record doesn't exist."""

    pass


class StatusRegressionError(StorageError):
    """Raised when an execution status update would move backwards."""

    pass


# -----------------------------------------------------------------------------
# Execution lifecycle
# -----------------------------------------------------------------------------

# Rank of each execution status; an update may only move to an equal or higher rank.
STATUS_ORDER = {
    "pending": 0,
    "running": 1,
    "completed": 2,
    "failed": 2,
}

TERMINAL_STATUSES = frozenset({"completed", "failed"})


# -----------------------------------------------------------------------------
# Schema
# -----------------------------------------------------------------------------

SCHEMA_SQL = """
-- Generated plans, persisted so executions can reference them
CREATE TABLE IF NOT EXISTS workflows (
    id TEXT PRIMARY KEY,
    request TEXT,
    plan TEXT NOT NULL,
    source TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- One row per run of a plan
CREATE TABLE IF NOT EXISTS executions (
    id TEXT PRIMARY KEY,
    workflow_id TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    input TEXT,
    steps TEXT,
    output TEXT,
    execution_time INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT,
    FOREIGN KEY (workflow_id) REFERENCES workflows(id) ON DELETE SET NULL
);

-- Fingerprint cache for generated plans
CREATE TABLE IF NOT EXISTS cache (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    created_at TEXT NOT NULL,
    expires_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_executions_created ON executions(created_at);
CREATE INDEX IF NOT EXISTS idx_executions_workflow ON executions(workflow_id);
CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache(expires_at);
"""
