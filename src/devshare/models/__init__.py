"""Pydantic data models for devshare shared state.

This package defines the data structures persisted in the state
directory and returned by the coordinator:
- Coordination lock (Lock)
- User registrations (UserRegistration, Registry)
- Server record and stop-intent marker (ServerRecord, StopRequest)
- Status and operation results (StatusReport, OperationResult)

All models are Pydantic BaseModel subclasses, so every state file is
plain JSON written with model_dump_json() and read back with
model_validate_json().
"""

from .lock import Lock
from .registration import Registry, UserRegistration
from .server import ServerRecord, StopRequest
from .status import (
    ErrorKind,
    LockInfo,
    OperationResult,
    Outcome,
    ServerState,
    StatusReport,
)

__all__ = [
    "ErrorKind",
    "Lock",
    "LockInfo",
    "OperationResult",
    "Outcome",
    "Registry",
    "ServerRecord",
    "ServerState",
    "StatusReport",
    "StopRequest",
    "UserRegistration",
]
