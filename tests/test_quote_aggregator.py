import json
import math
import threading
import unittest

from quote_stubs import StubUpstreamClient, http_error

from market_tape.services.quote_aggregator import QuoteAggregationService, normalize_symbols
from market_tape.services.response_cache import InMemoryResponseCache


def _service(upstream, cache=None) -> QuoteAggregationService:
    return QuoteAggregationService(
        upstream_client=upstream,
        response_cache=cache or InMemoryResponseCache(),
        cache_ttl_sec=15,
    )


class NormalizeSymbolsTest(unittest.TestCase):
    def test_duplicates_and_mixed_case_collapse(self):
        self.assertEqual(normalize_symbols("aapl,AAPL, msft"), ["AAPL", "MSFT"])

    def test_empty_tokens_are_dropped(self):
        self.assertEqual(normalize_symbols(" , spy,, ,qqq ,"), ["SPY", "QQQ"])

    def test_missing_or_blank_yields_nothing(self):
        self.assertEqual(normalize_symbols(None), [])
        self.assertEqual(normalize_symbols(""), [])
        self.assertEqual(normalize_symbols(" , ,"), [])

    def test_truncates_to_first_25_distinct(self):
        raw = ",".join(["AAA", "aaa"] + [f"S{i}" for i in range(30)])

        symbols = normalize_symbols(raw)

        self.assertEqual(len(symbols), 25)
        self.assertEqual(symbols[0], "AAA")
        self.assertEqual(symbols[1], "S0")
        self.assertEqual(symbols[-1], "S23")

    def test_custom_cap(self):
        self.assertEqual(normalize_symbols("a,b,c", max_symbols=2), ["A", "B"])


class QuoteAggregationServiceTest(unittest.IsolatedAsyncioTestCase):
    async def test_one_upstream_call_per_symbol_in_request_order(self):
        upstream = StubUpstreamClient(
            rows={
                "AAPL": {"price": 190.0, "change": 2.0, "change_percent": 1.06},
                "MSFT": {"price": 410.0, "change": -1.5, "change_percent": -0.36},
            }
        )
        service = _service(upstream)

        quotes = await service.fetch_quotes(["AAPL", "MSFT"])

        self.assertEqual([q.symbol for q in quotes], ["AAPL", "MSFT"])
        self.assertEqual(quotes[1].change_percent, -0.36)
        self.assertEqual(upstream.calls_by_symbol, {"AAPL": 1, "MSFT": 1})

    async def test_full_batch_runs_all_lookups_at_once(self):
        barrier = threading.Barrier(25, timeout=2)

        class BarrierUpstream(StubUpstreamClient):
            def get_quote(self, symbol):
                barrier.wait()
                return super().get_quote(symbol)

        upstream = BarrierUpstream()
        service = _service(upstream)
        self.addCleanup(service.close)

        quotes = await service.fetch_quotes([f"S{i}" for i in range(25)])

        self.assertEqual(len(quotes), 25)
        self.assertFalse(barrier.broken)

    async def test_failed_symbols_are_omitted_without_failing_the_batch(self):
        upstream = StubUpstreamClient(
            rows={
                "NOPE": {"price": 0.0, "change": 0.0, "change_percent": 0.0},
                "NANS": {"price": 10.0, "change": math.nan, "change_percent": 1.0},
                "INFS": {"price": math.inf, "change": 1.0, "change_percent": 1.0},
                "NEG": {"price": -4.0, "change": 1.0, "change_percent": 1.0},
            },
            failing={
                "DOWN": http_error(500),
                "SLOW": TimeoutError("timeout:SLOW"),
                "JUNK": ValueError("Expecting value"),
            },
        )
        service = _service(upstream)

        quotes = await service.fetch_quotes(
            ["SPY", "NOPE", "NANS", "INFS", "NEG", "DOWN", "SLOW", "JUNK", "QQQ"]
        )

        self.assertEqual([q.symbol for q in quotes], ["SPY", "QQQ"])
        metrics = service.metrics()
        self.assertEqual(metrics["upstream_calls"], 9)
        self.assertEqual(metrics["upstream_failures"], 7)
        self.assertEqual(metrics["batch_target_count"], 9)
        self.assertEqual(metrics["batch_final_count"], 2)

    async def test_every_returned_quote_is_valid(self):
        upstream = StubUpstreamClient(
            rows={"BAD": {"price": "n/a", "change": 1.0, "change_percent": 1.0}}
        )
        service = _service(upstream)

        quotes = await service.fetch_quotes(["BAD", "GOOD"])

        for quote in quotes:
            self.assertTrue(quote.symbol)
            self.assertGreater(quote.price, 0)
            self.assertTrue(math.isfinite(quote.change))
            self.assertTrue(math.isfinite(quote.change_percent))
        self.assertEqual([q.symbol for q in quotes], ["GOOD"])

    async def test_all_failures_still_render_an_empty_payload(self):
        upstream = StubUpstreamClient(failing={"AAPL": http_error(403)})
        service = _service(upstream)

        body, cached = await service.get_payload("k", ["AAPL"])

        self.assertFalse(cached)
        payload = json.loads(body)
        self.assertEqual(payload["quotes"], [])
        self.assertTrue(payload["updatedAt"].endswith("Z"))

    async def test_payload_uses_wire_field_names(self):
        upstream = StubUpstreamClient(
            rows={"NVDA": {"price": 120.5, "change": 3.0, "change_percent": 2.55}}
        )
        service = _service(upstream)

        body, _ = await service.get_payload("k", ["NVDA"])

        self.assertEqual(
            json.loads(body)["quotes"],
            [{"symbol": "NVDA", "price": 120.5, "change": 3.0, "changePercent": 2.55}],
        )

    async def test_cached_payload_skips_upstream(self):
        upstream = StubUpstreamClient()
        service = _service(upstream)

        first, first_cached = await service.get_payload("k", ["AAPL", "MSFT"])
        second, second_cached = await service.get_payload("k", ["AAPL", "MSFT"])

        self.assertFalse(first_cached)
        self.assertTrue(second_cached)
        self.assertEqual(first, second)
        self.assertEqual(upstream.calls, 2)
        self.assertEqual(service.metrics()["cache_hits"], 1)
        self.assertEqual(service.metrics()["requests"], 2)


if __name__ == "__main__":
    unittest.main()
