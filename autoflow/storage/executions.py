"""
Execution and workflow storage operations.

An execution is one run of a plan. It is created once when the run starts
and updated once more when it reaches a terminal state. Workflows are the
plans themselves, persisted so executions can point back at them.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .schema import (
    STATUS_ORDER,
    TERMINAL_STATUSES,
    IntegrityError,
    StatusRegressionError,
    StorageError,
)


# -----------------------------------------------------------------------------
# Data Classes
# -----------------------------------------------------------------------------


@dataclass
class ExecutionRecord:
    """A persisted execution of a plan."""

    id: str
    workflow_id: str | None
    status: str
    input: Any
    steps: Any
    output: Any
    execution_time: int
    created_at: str
    updated_at: str | None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "status": self.status,
            "input": self.input,
            "steps": self.steps,
            "output": self.output,
            "execution_time": self.execution_time,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class WorkflowRecord:
    """A persisted plan."""

    id: str
    request: str | None
    plan: dict
    source: str | None
    created_at: str
    updated_at: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request": self.request,
            "plan": self.plan,
            "source": self.source,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


_EXECUTION_COLUMNS = (
    "id, workflow_id, status, input, steps, output, execution_time, created_at, updated_at"
)
_WORKFLOW_COLUMNS = "id, request, plan, source, created_at, updated_at"

# Columns update_execution is allowed to touch
_UPDATABLE = ("workflow_id", "status", "steps", "output", "execution_time")
_JSON_FIELDS = ("input", "steps", "output")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=str)


def _load(value: str | None) -> Any:
    if value is None:
        return None
    return json.loads(value)


def _row_to_execution(row: sqlite3.Row) -> ExecutionRecord:
    return ExecutionRecord(
        id=row["id"],
        workflow_id=row["workflow_id"],
        status=row["status"],
        input=_load(row["input"]),
        steps=_load(row["steps"]),
        output=_load(row["output"]),
        execution_time=row["execution_time"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_workflow(row: sqlite3.Row) -> WorkflowRecord:
    return WorkflowRecord(
        id=row["id"],
        request=row["request"],
        plan=_load(row["plan"]),
        source=row["source"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# -----------------------------------------------------------------------------
# Executions
# -----------------------------------------------------------------------------


def create_execution(
    conn: sqlite3.Connection,
    record: dict[str, Any],
    *,
    execution_id: str | None = None,
) -> ExecutionRecord:
    """
    Insert a new execution.

    Args:
        conn: Database connection
        record: Initial fields (workflow_id, status, input, steps, output,
            execution_time). Status defaults to "pending".
        execution_id: Optional custom ID (generates a UUID if not provided)

    Returns:
        The stored ExecutionRecord, including its id and created_at

    Raises:
        StorageError: If the status is unknown
        IntegrityError: If an execution with this id already exists
    """
    if execution_id is None:
        execution_id = record.get("id") or str(uuid.uuid4())

    status = record.get("status") or "pending"
    if status not in STATUS_ORDER:
        raise StorageError(f"Unknown execution status: {status}")

    now = _now()
    try:
        cursor = conn.execute(
            f"""
            INSERT INTO executions (id, workflow_id, status, input, steps, output,
                                    execution_time, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING {_EXECUTION_COLUMNS}
            """,
            (
                execution_id,
                record.get("workflow_id"),
                status,
                _dump(record.get("input")),
                _dump(record.get("steps")),
                _dump(record.get("output")),
                int(record.get("execution_time") or 0),
                now,
                now,
            ),
        )
        row = cursor.fetchone()
        conn.commit()
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise IntegrityError(f"Execution '{execution_id}' could not be created: {e}") from e

    return _row_to_execution(row)


def get_execution(conn: sqlite3.Connection, execution_id: str) -> ExecutionRecord | None:
    """Get an execution by ID."""
    cursor = conn.execute(
        f"SELECT {_EXECUTION_COLUMNS} FROM executions WHERE id = ?",
        (execution_id,),
    )
    row = cursor.fetchone()
    return _row_to_execution(row) if row else None


def get_all_executions(
    conn: sqlite3.Connection,
    *,
    limit: int | None = None,
) -> list[ExecutionRecord]:
    """Get executions, most recent first."""
    sql = f"SELECT {_EXECUTION_COLUMNS} FROM executions ORDER BY created_at DESC, rowid DESC"
    params: tuple = ()
    if limit is not None:
        sql += " LIMIT ?"
        params = (limit,)
    cursor = conn.execute(sql, params)
    return [_row_to_execution(row) for row in cursor.fetchall()]


def update_execution(
    conn: sqlite3.Connection,
    execution_id: str,
    fields: dict[str, Any],
) -> ExecutionRecord | None:
    """
    Apply a partial update to an execution.

    Unknown keys are ignored. A status change may never move backwards
    (running -> pending) nor flip one terminal status to another.

    Returns:
        The updated ExecutionRecord, or None if no execution has this id

    Raises:
        StatusRegressionError: If the status update would regress
    """
    current = get_execution(conn, execution_id)
    if current is None:
        return None

    updates = {k: v for k, v in fields.items() if k in _UPDATABLE}

    new_status = updates.get("status")
    if new_status is not None:
        if new_status not in STATUS_ORDER:
            raise StorageError(f"Unknown execution status: {new_status}")
        if STATUS_ORDER[new_status] < STATUS_ORDER[current.status] or (
            current.status in TERMINAL_STATUSES and new_status != current.status
        ):
            raise StatusRegressionError(
                f"Execution '{execution_id}' cannot move from {current.status} to {new_status}"
            )

    assignments = []
    values: list[Any] = []
    for key, value in updates.items():
        assignments.append(f"{key} = ?")
        if key in _JSON_FIELDS:
            values.append(_dump(value))
        elif key == "execution_time":
            values.append(int(value or 0))
        else:
            values.append(value)

    assignments.append("updated_at = ?")
    values.append(_now())
    values.append(execution_id)

    cursor = conn.execute(
        f"""
        UPDATE executions SET {", ".join(assignments)}
        WHERE id = ?
        RETURNING {_EXECUTION_COLUMNS}
        """,
        values,
    )
    row = cursor.fetchone()
    conn.commit()

    return _row_to_execution(row) if row else None


# -----------------------------------------------------------------------------
# Workflows
# -----------------------------------------------------------------------------


def create_workflow(
    conn: sqlite3.Connection,
    record: dict[str, Any],
    *,
    workflow_id: str | None = None,
) -> WorkflowRecord:
    """
    Persist a generated plan.

    Args:
        conn: Database connection
        record: Fields: plan (wire dict, required), request, source

    Returns:
        The stored WorkflowRecord
    """
    if "plan" not in record:
        raise StorageError("Workflow record requires a 'plan'")

    if workflow_id is None:
        workflow_id = str(uuid.uuid4())

    now = _now()
    cursor = conn.execute(
        f"""
        INSERT INTO workflows (id, request, plan, source, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        RETURNING {_WORKFLOW_COLUMNS}
        """,
        (workflow_id, record.get("request"), _dump(record["plan"]), record.get("source"), now, now),
    )
    row = cursor.fetchone()
    conn.commit()

    return _row_to_workflow(row)


def get_workflow(conn: sqlite3.Connection, workflow_id: str) -> WorkflowRecord | None:
    """Get a persisted plan by ID."""
    cursor = conn.execute(
        f"SELECT {_WORKFLOW_COLUMNS} FROM workflows WHERE id = ?",
        (workflow_id,),
    )
    row = cursor.fetchone()
    return _row_to_workflow(row) if row else None


def get_all_workflows(conn: sqlite3.Connection) -> list[WorkflowRecord]:
    """Get all persisted plans, most recent first."""
    cursor = conn.execute(
        f"SELECT {_WORKFLOW_COLUMNS} FROM workflows ORDER BY created_at DESC, rowid DESC"
    )
    return [_row_to_workflow(row) for row in cursor.fetchall()]
