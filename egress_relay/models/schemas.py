from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FetchRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str
    headers: dict[str, list[str]] = Field(default_factory=dict, alias="header")

    @field_validator("headers", mode="before")
    @classmethod
    def _null_headers_are_empty(cls, value: object) -> object:
        return {} if value is None else value


class FetchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    status_code: int = 0
    headers: dict[str, list[str]] = Field(default_factory=dict, alias="header")
    body: str = ""
    status_message: str = Field(default="", alias="status")

    @classmethod
    def failure(cls, url: str, message: str) -> FetchResult:
        return cls(url=url, status_code=0, headers={}, body="", status_message=message)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class LatencyWindow(BaseModel):
    count: int
    total_seconds: float = 0.0
    mean_seconds: float | None = None


class StatsResponse(BaseModel):
    pending_samples: int
    interval_seconds: float
    last_window: LatencyWindow | None = None
