"""
Autoflow storage layer.

All SQL operations are encapsulated here. No other module should
contain SQL strings or direct database operations.

The storage layer keeps three kinds of records:
- WORKFLOWS: generated plans
- EXECUTIONS: one row per run of a plan, created running and closed once
- CACHE: fingerprint -> plan entries with an absolute expiry

Usage:
    from autoflow.storage import init_db, create_execution, update_execution

    conn = init_db("autoflow.db")
    record = create_execution(conn, {"status": "running", "input": {"prompt": "..."}})
    update_execution(conn, record.id, {"status": "completed"})

    # From async code
    from autoflow.storage import SQLiteStore
    store = SQLiteStore("autoflow.db")
    record = await store.create_execution({"status": "running"})
"""

from .cache import (
    DEFAULT_TTL_SECONDS,
    clear_expired_cache,
    delete_cache_value,
    get_cache_value,
    set_cache_value,
)
from .connection import init_db
from .executions import (
    ExecutionRecord,
    WorkflowRecord,
    create_execution,
    create_workflow,
    get_all_executions,
    get_all_workflows,
    get_execution,
    get_workflow,
    update_execution,
)
from .schema import IntegrityError, NotFoundError, StatusRegressionError, StorageError
from .store import SQLiteStore

__all__ = [
    # Connection
    "init_db",
    # Executions
    "ExecutionRecord",
    "create_execution",
    "update_execution",
    "get_execution",
    "get_all_executions",
    # Workflows
    "WorkflowRecord",
    "create_workflow",
    "get_workflow",
    "get_all_workflows",
    # Cache
    "DEFAULT_TTL_SECONDS",
    "set_cache_value",
    "get_cache_value",
    "delete_cache_value",
    "clear_expired_cache",
    # Async facade
    "SQLiteStore",
    # Exceptions
    "StorageError",
    "IntegrityError",
    "NotFoundError",
    "StatusRegressionError",
]
