class MarketTapeError(Exception):
    pass


class UpstreamQuoteError(MarketTapeError):
    """Upstream returned no usable quote for a symbol."""


class QuoteFetchError(MarketTapeError):
    """A poll against the quote service did not yield any quotes."""
