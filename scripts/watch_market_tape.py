from __future__ import annotations

import asyncio
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from market_tape.client.quote_poller import QuotePoller
from market_tape.client.tape import render_tape, status_text, tape_items
from market_tape.config.settings import get_client_settings


async def watch() -> None:
    settings = get_client_settings()
    watchlist = settings.MARKET_TAPE_SYMBOLS

    def on_change(view) -> None:
        print(render_tape(tape_items(view, watchlist), status_text(view)), flush=True)

    poller = QuotePoller(
        watchlist,
        endpoint=settings.MARKET_TAPE_URL,
        poll_interval_sec=settings.MARKET_TAPE_POLL_SEC,
        origin=settings.MARKET_TAPE_ORIGIN,
        timeout_sec=settings.MARKET_TAPE_TIMEOUT_SEC,
        on_change=on_change,
    )
    on_change(poller.view())
    if not poller.start():
        return

    try:
        await asyncio.Event().wait()
    finally:
        await poller.stop()


def main() -> None:
    try:
        asyncio.run(watch())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
