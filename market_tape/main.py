from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from market_tape.api.routes import http_error_handler, router


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        yield
    finally:
        service = getattr(app.state, "quote_service", None)
        if service is not None:
            service.close()


app = FastAPI(
    title="Market Tape Quote Proxy",
    version="0.1.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    lifespan=lifespan,
)
app.include_router(router)
app.add_exception_handler(StarletteHTTPException, http_error_handler)

# lazily built from settings on the first /quotes request; tests swap it out
app.state.quote_service = None
