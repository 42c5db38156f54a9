####################################
# --- Request/response schemas --- #
####################################

from pathlib import Path
from typing import Any, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field

from upload2dir.errors import FAILURE_CODE

SUCCESS_CODE = 0


class Destination(BaseModel):
    """Resolved on-disk target of a request, derived once and never changed."""
    model_config = ConfigDict(frozen=True)

    directory: Path = Field(description="Directory holding the target.")
    filename: str = Field(description="Last path segment of the target.")

    @property
    def path(self) -> Path:
        return self.directory / self.filename


class User(BaseModel):
    """A user of the user table together with the action verbs it may perform."""
    model_config = ConfigDict(frozen=True)

    name: str
    permitted_actions: FrozenSet[str] = Field(default_factory=frozenset)

    def can(self, action: str) -> bool:
        return action in self.permitted_actions


class UploadRequest(BaseModel):
    """What the client told us about an upload. Audit data only, never trusted."""
    model_config = ConfigDict(frozen=True)

    declared_filename: Optional[str] = None
    declared_size: Optional[int] = None
    content_type: Optional[str] = None
    target_path_hint: Optional[str] = None


class CommitResult(BaseModel):
    """Outcome of a successful upload commit."""
    model_config = ConfigDict(frozen=True)

    destination: Destination
    bytes_written: int = Field(description="Bytes copied to the destination file.")
    upload: UploadRequest
    backup_path: Optional[Path] = Field(
        default=None,
        description="Where the previous version was moved to, if there was one.",
    )


class ResultEnvelope(BaseModel):
    """Response body of every handled request."""

    code: int = Field(description="0 on success, negative on failure.")
    message: Optional[str] = None
    data: Optional[Any] = None

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"code": 0, "data": {"dir": "/srv/files/docs/report.txt"}},
                {"code": -1, "message": "access denied"},
            ]
        }
    )

    @classmethod
    def success(cls, data: Any = None) -> "ResultEnvelope":
        return cls(code=SUCCESS_CODE, data=data)

    @classmethod
    def failure(cls, message: str, code: int = FAILURE_CODE) -> "ResultEnvelope":
        return cls(code=code, message=message)

    def to_body(self) -> dict:
        """Success bodies carry `code` and `data`, failure bodies `code` and `message`."""
        if self.code == SUCCESS_CODE:
            return {"code": self.code, "data": self.data}
        return {"code": self.code, "message": self.message}
