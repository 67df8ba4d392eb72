from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor

from pydantic import ValidationError

from market_tape.errors import UpstreamQuoteError
from market_tape.schemas.quote import Quote, QuotesResponse, utc_timestamp
from market_tape.services.response_cache import ResponseCache

MAX_SYMBOLS = 25


def normalize_symbols(raw: str | None, max_symbols: int = MAX_SYMBOLS) -> list[str]:
    """Split a comma-separated ticker list into distinct uppercased symbols.

    Order of first occurrence is kept and the result is capped at
    ``max_symbols`` after deduplication.
    """
    if not raw:
        return []

    unique_symbols: list[str] = []
    seen: set[str] = set()
    for token in raw.split(","):
        value = token.strip().upper()
        if not value or value in seen:
            continue
        seen.add(value)
        unique_symbols.append(value)
    return unique_symbols[:max_symbols]


class QuoteAggregationService:
    """Parallel per-symbol upstream fan-out with a shared response cache."""

    def __init__(
        self,
        *,
        upstream_client,
        response_cache: ResponseCache,
        cache_ttl_sec: int = 15,
        max_symbols: int = MAX_SYMBOLS,
    ) -> None:
        self.upstream_client = upstream_client
        self.response_cache = response_cache
        self.cache_ttl_sec = cache_ttl_sec
        self.max_symbols = max_symbols
        # one worker per symbol so a full batch never queues behind itself
        self._executor = ThreadPoolExecutor(max_workers=max_symbols, thread_name_prefix="quote-upstream")

        self.requests = 0
        self.cache_hits = 0
        self.upstream_calls = 0
        self.upstream_failures = 0
        self.last_batch_target = 0
        self.last_batch_final = 0

    def normalize(self, raw: str | None) -> list[str]:
        return normalize_symbols(raw, self.max_symbols)

    def _lookup(self, symbol: str) -> Quote:
        try:
            payload = self.upstream_client.get_quote(symbol)
        except ValueError as exc:
            raise UpstreamQuoteError(f"malformed payload: {exc}") from exc

        try:
            return Quote.model_validate({**payload, "symbol": symbol})
        except ValidationError as exc:
            raise UpstreamQuoteError(f"invalid quote fields: {exc.error_count()} errors") from exc

    def _fetch_one(self, symbol: str) -> Quote | None:
        try:
            return self._lookup(symbol)
        except Exception as exc:
            print(f"[QUOTE][upstream_error] symbol={symbol} error={exc}", flush=True)
            return None

    async def fetch_quotes(self, symbols: list[str]) -> list[Quote]:
        """Fetch every symbol concurrently; failed lookups are omitted."""
        loop = asyncio.get_running_loop()
        results = await asyncio.gather(
            *(loop.run_in_executor(self._executor, self._fetch_one, symbol) for symbol in symbols)
        )
        out = [quote for quote in results if quote is not None]

        target_count = len(symbols)
        self.upstream_calls += target_count
        self.upstream_failures += target_count - len(out)
        self.last_batch_target = target_count
        self.last_batch_final = len(out)

        print(
            "[QUOTE][batch_resolve] "
            f"target_count={target_count} final_count={len(out)} "
            f"failed_count={target_count - len(out)}",
            flush=True,
        )
        return out

    def render(self, quotes: list[Quote]) -> str:
        response = QuotesResponse(quotes=quotes, updated_at=utc_timestamp())
        return response.model_dump_json(by_alias=True)

    async def get_payload(self, cache_key: str, symbols: list[str]) -> tuple[str, bool]:
        """Return the serialized response body and whether it came from cache."""
        self.requests += 1
        cached = self.response_cache.get(cache_key)
        if cached is not None:
            self.cache_hits += 1
            print(f"[QUOTE][cache_hit] symbols={','.join(symbols)}", flush=True)
            return cached, True

        quotes = await self.fetch_quotes(symbols)
        body = self.render(quotes)
        self.response_cache.put(cache_key, body, self.cache_ttl_sec)
        return body, False

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def metrics(self) -> dict[str, int]:
        return {
            "requests": self.requests,
            "cache_hits": self.cache_hits,
            "upstream_calls": self.upstream_calls,
            "upstream_failures": self.upstream_failures,
            "batch_target_count": self.last_batch_target,
            "batch_final_count": self.last_batch_final,
        }
