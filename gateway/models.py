from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

SUCCESS = "success"
FAILURE = "failure"


class ForwardEnvelope(BaseModel):
    """JSON wrapper returned to the caller for every forwarded request."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    upstream_response: Optional[str] = Field(default=None, alias="upstream-response")
    error: Optional[str] = None

    @classmethod
    def success(cls, upstream_response: str) -> "ForwardEnvelope":
        return cls(message=SUCCESS, upstream_response=upstream_response)

    @classmethod
    def failure(cls, error: Optional[str] = None) -> "ForwardEnvelope":
        return cls(message=FAILURE, error=error)

    def to_content(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class StatusResponse(BaseModel):
    uptime: str
