from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from market_tape.schemas.feed import QuoteFeedView
from market_tape.schemas.quote import Quote

Direction = Literal["up", "down", "flat"]

_GLYPHS = {"up": "▲", "down": "▼", "flat": "•"}
_PLACEHOLDER = "—"


class TapeItem(BaseModel):
    symbol: str
    price: str
    change: str
    direction: Direction


def format_price(value: float) -> str:
    digits = 1 if value >= 1000 else 2
    return f"{value:,.{digits}f}"


def format_change_percent(value: float) -> str:
    sign = "+" if value > 0 else "−" if value < 0 else ""
    return f"{sign}{abs(value):.1f}%"


def direction(change: float) -> Direction:
    if change > 0:
        return "up"
    if change < 0:
        return "down"
    return "flat"


def to_tape_items(quotes: list[Quote]) -> list[TapeItem]:
    return [
        TapeItem(
            symbol=q.symbol,
            price=format_price(q.price),
            change=format_change_percent(q.change_percent),
            direction=direction(q.change),
        )
        for q in quotes
    ]


def placeholder_items(watchlist: list[str]) -> list[TapeItem]:
    return [
        TapeItem(symbol=s, price=_PLACEHOLDER, change=_PLACEHOLDER, direction="flat")
        for s in watchlist
    ]


def status_text(view: QuoteFeedView) -> str:
    if not view.configured:
        return "not configured"
    if view.status == "ready":
        return "live"
    if view.status == "error":
        return "offline"
    return "connecting"


def tape_items(view: QuoteFeedView, watchlist: list[str]) -> list[TapeItem]:
    if view.quotes:
        return to_tape_items(view.quotes)
    return placeholder_items(watchlist)


def render_tape(items: list[TapeItem], status: str | None = None) -> str:
    body = "   ".join(
        f"{item.symbol} {item.price} {_GLYPHS[item.direction]} {item.change}" for item in items
    )
    if status is None:
        return body
    return f"TAPE · {status} | {body}"
