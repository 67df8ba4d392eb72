from __future__ import annotations

from typing import Any, Dict, Optional

import requests


class FinnhubRestClient:
    """Minimal Finnhub REST quote client, one request per symbol."""

    DEFAULT_BASE_URL = "https://finnhub.io/api/v1"

    def __init__(
        self,
        api_key: str,
        session: Optional[Any] = None,
        base_url: Optional[str] = None,
        timeout_sec: float = 5.0,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")

        self.api_key = api_key
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.session = session or requests
        self.timeout_sec = timeout_sec

    @staticmethod
    def _to_float(value: Any) -> float:
        # missing or junk fields become NaN so quote validation drops them
        try:
            if value is None or value == "":
                return float("nan")
            return float(value)
        except (TypeError, ValueError):
            return float("nan")

    def get_quote(self, symbol: str) -> Dict[str, Any]:
        response = self.session.get(
            f"{self.base_url}/quote",
            headers={"Accept": "application/json"},
            params={"symbol": symbol, "token": self.api_key},
            timeout=self.timeout_sec,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"unexpected quote payload for {symbol}: {type(payload).__name__}")

        return {
            "symbol": symbol,
            "price": self._to_float(payload.get("c")),
            "change": self._to_float(payload.get("d")),
            "change_percent": self._to_float(payload.get("dp")),
        }
