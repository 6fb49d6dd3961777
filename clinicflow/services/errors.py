# FILE: clinicflow/services/errors.py
from __future__ import annotations


class WorkflowError(RuntimeError):
    pass


class WorkflowStateError(WorkflowError):
    """Operation not allowed from the row's current status (HTTP 409)."""
    pass
