"""Server process models."""

from datetime import datetime

from pydantic import BaseModel, Field


class ServerRecord(BaseModel):
    """The server process most recently started by devshare.

    create_time protects against PID reuse: the recorded pid only counts
    as our server while its process creation time still matches.
    """

    pid: int
    create_time: float | None = None
    started_at: datetime = Field(default_factory=datetime.now)
    started_by: str = ""
    command: str = ""


class StopRequest(BaseModel):
    """Advisory notice that an agent wants the server stopped."""

    reason: str = "Server stop requested"
    requested_at: datetime = Field(default_factory=datetime.now)
    requested_by: str = ""
