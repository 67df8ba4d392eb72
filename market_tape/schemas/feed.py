from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from market_tape.schemas.quote import Quote

FeedStatus = Literal["idle", "loading", "ready", "error"]


class QuoteFeedState(BaseModel):
    status: FeedStatus = "idle"
    quotes: list[Quote] = Field(default_factory=list)
    updated_at: float | None = None
    last_error: str | None = None


class QuoteFeedView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: FeedStatus
    quotes: list[Quote]
    endpoint: str | None
    last_error: str | None = Field(default=None, alias="lastError")
    updated_at: float | None = Field(default=None, alias="updatedAt")

    @property
    def configured(self) -> bool:
        return self.endpoint is not None
