"""Pydantic models for the server payloads the client reads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from acvpmeta.domain.types import RequestState


class AcvpBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PageLinks(AcvpBaseModel):
    first: str | None = None
    next: str | None = None
    prev: str | None = None
    last: str | None = None


class SearchPage(AcvpBaseModel):
    total_count: int = Field(default=0, alias="totalCount")
    incomplete: bool = False
    links: PageLinks | None = None
    data: list[dict[str, object]] = Field(default_factory=list)

    @property
    def has_more(self) -> bool:
        if self.links is not None and self.links.next is None:
            return False
        return self.incomplete


class RequestStatusPayload(AcvpBaseModel):
    url: str
    status: RequestState
    approved_url: str | None = Field(default=None, alias="approvedUrl")
    message: str | None = None


class ErrorResponse(AcvpBaseModel):
    error: str
    context: str | None = None
