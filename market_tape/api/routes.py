from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from market_tape.config.settings import get_settings
from market_tape.integrations.finnhub_rest import FinnhubRestClient
from market_tape.services.quote_aggregator import QuoteAggregationService, normalize_symbols
from market_tape.services.response_cache import InMemoryResponseCache

router = APIRouter()

_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

_BASE_HEADERS = {
    "content-type": "application/json; charset=utf-8",
    "access-control-allow-origin": "*",
    "access-control-allow-methods": "GET, OPTIONS",
    "access-control-allow-headers": "content-type",
}

_HTTP_ERRORS = {404: "Not found", 405: "Method not allowed"}


def _json(body: dict, status_code: int) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers=_BASE_HEADERS)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework-raised errors (e.g. verbs outside the route's method list) keep the JSON contract."""
    return _json({"error": _HTTP_ERRORS.get(exc.status_code, str(exc.detail))}, exc.status_code)


def _is_quotes_path(path: str) -> bool:
    return path == "/quotes" or path.endswith("/quotes")


def _cache_key(request: Request, symbols: list[str]) -> str:
    # keyed on the symbol set; the cached body keeps the order of the request that filled it
    url = request.url
    return f"{url.scheme}://{url.netloc}{url.path}?symbols={','.join(sorted(symbols))}"


def _quote_service(request: Request) -> QuoteAggregationService | None:
    service = getattr(request.app.state, "quote_service", None)
    if service is None:
        # NOTE: built on first use so app import does not require env.
        try:
            settings = get_settings()
        except ValidationError as exc:
            print(f"[QUOTE][config_error] errors={exc.error_count()}", flush=True)
            return None
        service = QuoteAggregationService(
            upstream_client=FinnhubRestClient(
                api_key=settings.FINNHUB_API_KEY,
                base_url=settings.FINNHUB_BASE_URL,
                timeout_sec=settings.UPSTREAM_TIMEOUT_SEC,
            ),
            response_cache=InMemoryResponseCache(),
            cache_ttl_sec=settings.QUOTE_CACHE_TTL_SEC,
            max_symbols=settings.QUOTE_MAX_SYMBOLS,
        )
        request.app.state.quote_service = service
    return service


@router.api_route("/{path:path}", methods=_ALL_METHODS, include_in_schema=False)
async def handle(path: str, request: Request):
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=_BASE_HEADERS)
    if request.method != "GET":
        return _json({"error": "Method not allowed"}, 405)
    if not _is_quotes_path(request.url.path):
        return _json({"error": "Not found"}, 404)

    raw_symbols = request.query_params.get("symbols")
    if not normalize_symbols(raw_symbols):
        return _json({"error": "Missing symbols", "quotes": []}, 400)

    service = _quote_service(request)
    if service is None:
        return _json({"error": "Quote service not configured", "quotes": []}, 503)
    symbols = service.normalize(raw_symbols)

    body, _ = await service.get_payload(_cache_key(request, symbols), symbols)
    return Response(
        content=body,
        status_code=200,
        headers={**_BASE_HEADERS, "cache-control": f"public, max-age={service.cache_ttl_sec}"},
    )
