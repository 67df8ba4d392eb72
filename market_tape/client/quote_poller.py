from __future__ import annotations

import asyncio
import re
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

import requests
from pydantic import ValidationError

from market_tape.errors import QuoteFetchError
from market_tape.schemas.feed import QuoteFeedState, QuoteFeedView
from market_tape.schemas.quote import Quote

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_endpoint(raw: str | None) -> str | None:
    """Blank means not configured; a bare host gets an https:// prefix."""
    value = (raw or "").strip()
    if not value:
        return None
    if not _SCHEME_RE.match(value) and not value.startswith("/"):
        return f"https://{value}"
    return value


def build_quotes_url(endpoint: str, symbols_key: str, origin: str | None = None) -> str:
    if endpoint.startswith("/"):
        if not origin:
            raise QuoteFetchError(f"relative endpoint {endpoint} needs an origin")
        endpoint = urljoin(origin, endpoint)

    parts = urlsplit(endpoint)
    path = parts.path
    if not path.endswith("/quotes"):
        path = f"{path.rstrip('/')}/quotes"
    params = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "symbols"]
    params.append(("symbols", symbols_key))
    query = urlencode(params, safe=",")
    return urlunsplit((parts.scheme, parts.netloc, path, query, ""))


def parse_quotes_payload(data: Any) -> list[Quote]:
    """Keep every well-formed quote; anything that is not a quote list raises."""
    if not isinstance(data, dict):
        raise QuoteFetchError("quote payload is not an object")
    raw = data.get("quotes")
    if not isinstance(raw, list):
        raise QuoteFetchError("quote payload has no quotes list")

    out: list[Quote] = []
    for row in raw:
        if not isinstance(row, dict):
            continue
        try:
            out.append(Quote.model_validate(row))
        except ValidationError:
            continue
    return out


async def ticker(
    interval_sec: float,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> AsyncIterator[int]:
    """Yield tick numbers forever: one immediately, then one per interval."""
    tick = 0
    while True:
        yield tick
        tick += 1
        await sleep(interval_sec)


class QuotePoller:
    """Polls the quote service for a watchlist and keeps the last good snapshot."""

    def __init__(
        self,
        symbols: list[str],
        *,
        endpoint: str | None,
        poll_interval_sec: float = 30.0,
        origin: str | None = None,
        session: Optional[Any] = None,
        timeout_sec: float = 10.0,
        clock: Callable[[], float] = time.time,
        on_change: Optional[Callable[[QuoteFeedView], None]] = None,
    ) -> None:
        self.endpoint = normalize_endpoint(endpoint)
        self.symbols_key = ",".join(s.strip().upper() for s in symbols if s.strip())
        self.poll_interval_sec = poll_interval_sec
        self.origin = origin
        self.session = session or requests
        self.timeout_sec = timeout_sec
        self._clock = clock
        self._on_change = on_change

        self._state = QuoteFeedState()
        self._closed = False
        self._runner: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def configured(self) -> bool:
        return bool(self.endpoint and self.symbols_key)

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def view(self) -> QuoteFeedView:
        return QuoteFeedView(
            status=self._state.status,
            quotes=list(self._state.quotes),
            endpoint=self.endpoint,
            last_error=self._state.last_error,
            updated_at=self._state.updated_at,
        )

    def _set_state(self, state: QuoteFeedState) -> None:
        if self._closed:
            return
        self._state = state
        if self._on_change is not None:
            self._on_change(self.view())

    def fetch_quotes(self) -> list[Quote]:
        """Blocking single request; raises QuoteFetchError on any failure."""
        url = build_quotes_url(self.endpoint, self.symbols_key, self.origin)
        try:
            response = self.session.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self.timeout_sec,
            )
        except Exception as exc:
            raise QuoteFetchError(f"quote request failed: {exc}") from exc

        status_code = getattr(response, "status_code", 0)
        if not 200 <= status_code < 300:
            raise QuoteFetchError(f"Quote fetch failed: {status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise QuoteFetchError("quote response is not JSON") from exc

        quotes = parse_quotes_payload(data)
        if not quotes:
            raise QuoteFetchError("Quote fetch returned no quotes")
        return quotes

    async def poll_once(self) -> None:
        prev = self._state
        self._set_state(prev.model_copy(update={"status": "loading"}))
        try:
            quotes = await asyncio.to_thread(self.fetch_quotes)
        except Exception as exc:
            if self._closed:
                return
            print(f"[TAPE][poll_error] endpoint={self.endpoint} error={exc}", flush=True)
            # failures never clear the last good snapshot
            self._set_state(
                self._state.model_copy(update={"status": "error", "last_error": str(exc)})
            )
            return

        self._set_state(
            QuoteFeedState(status="ready", quotes=quotes, updated_at=self._clock(), last_error=None)
        )

    def _spawn_poll(self) -> None:
        task = asyncio.create_task(self.poll_once())
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def run(self, ticks: AsyncIterator[int] | None = None) -> None:
        """Start one poll per tick without waiting on earlier polls."""
        source = ticks if ticks is not None else ticker(self.poll_interval_sec)
        async for _ in source:
            if self._closed:
                break
            self._spawn_poll()

    def start(self) -> bool:
        if not self.configured:
            print("[TAPE][poller_disabled] reason=not_configured", flush=True)
            return False
        if self.running:
            return True

        self._closed = False
        print(
            f"[TAPE][poller_start] endpoint={self.endpoint} symbols={self.symbols_key} "
            f"interval_sec={self.poll_interval_sec}",
            flush=True,
        )
        self._runner = asyncio.create_task(self.run())
        return True

    async def stop(self) -> None:
        self._closed = True
        tasks = list(self._in_flight)
        if self._runner is not None:
            tasks.append(self._runner)
            self._runner = None

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._in_flight.clear()
        print(f"[TAPE][poller_stop] cancelled={len(tasks)}", flush=True)
