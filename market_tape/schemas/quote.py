from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Quote(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symbol: str = Field(min_length=1)
    price: float = Field(gt=0, allow_inf_nan=False)
    change: float = Field(allow_inf_nan=False)
    change_percent: float = Field(alias="changePercent", allow_inf_nan=False)

    @field_validator("symbol", mode="before")
    @classmethod
    def _normalize_symbol(cls, value):
        if value is None:
            return ""
        return str(value).strip().upper()


class QuotesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quotes: list[Quote]
    updated_at: str = Field(alias="updatedAt")


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2026-01-02T03:04:05.678Z."""
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    current = current.astimezone(timezone.utc)
    return current.isoformat(timespec="milliseconds").replace("+00:00", "Z")
