import math
import unittest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from market_tape.schemas.quote import Quote, QuotesResponse, utc_timestamp


class QuoteSchemaTest(unittest.TestCase):
    def test_symbol_is_trimmed_and_uppercased(self):
        quote = Quote.model_validate({"symbol": " brk.b ", "price": 1, "change": 0, "changePercent": 0})

        self.assertEqual(quote.symbol, "BRK.B")

    def test_non_finite_or_non_positive_values_are_rejected(self):
        rows = [
            {"symbol": "A", "price": 0, "change": 0, "changePercent": 0},
            {"symbol": "A", "price": math.nan, "change": 0, "changePercent": 0},
            {"symbol": "A", "price": 1, "change": math.inf, "changePercent": 0},
            {"symbol": "A", "price": 1, "change": 0, "changePercent": -math.inf},
            {"symbol": None, "price": 1, "change": 0, "changePercent": 0},
            {"symbol": "A", "price": 1, "change": 0},
        ]
        for row in rows:
            with self.assertRaises(ValidationError):
                Quote.model_validate(row)

    def test_wire_names_use_camel_case(self):
        response = QuotesResponse(
            quotes=[Quote(symbol="V", price=280.0, change=0.0, change_percent=0.0)],
            updated_at="2026-01-02T03:04:05.678Z",
        )

        self.assertEqual(
            response.model_dump(by_alias=True),
            {
                "quotes": [{"symbol": "V", "price": 280.0, "change": 0.0, "changePercent": 0.0}],
                "updatedAt": "2026-01-02T03:04:05.678Z",
            },
        )

    def test_utc_timestamp_has_millis_and_z_suffix(self):
        kst = timezone(timedelta(hours=9))
        self.assertEqual(
            utc_timestamp(datetime(2026, 1, 2, 12, 4, 5, 678900, tzinfo=kst)),
            "2026-01-02T03:04:05.678Z",
        )
        self.assertEqual(
            utc_timestamp(datetime(2026, 1, 2, 3, 4, 5)),
            "2026-01-02T03:04:05.000Z",
        )


if __name__ == "__main__":
    unittest.main()
