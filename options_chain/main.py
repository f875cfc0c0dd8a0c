import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from options_chain.chain import assemble_chain
from options_chain.errors import MissingParameterError, OptionsChainError
from options_chain.expirations import list_expiration_dates
from options_chain.schemas import ExpirationDatesResponse, OptionsChainResponse
from options_chain.utils import PolygonSources, Settings, close_sources, configure_logging, load_settings, open_sources

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_sources()


app = FastAPI(title="Options Chain", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


def get_settings() -> Settings:
    return load_settings()


def get_sources_factory() -> Callable[[Settings], PolygonSources]:
    return open_sources


@app.exception_handler(OptionsChainError)
async def options_chain_error_handler(request: Request, exc: OptionsChainError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/options", response_model=OptionsChainResponse)
def get_options(
    ticker: Optional[str] = None,
    expiration_date: Optional[str] = Query(None, alias="expirationDate"),
    contract_type: Optional[str] = Query(None, alias="contractType"),
    settings: Settings = Depends(get_settings),
    sources_factory: Callable[[Settings], PolygonSources] = Depends(get_sources_factory),
):
    if not ticker or not expiration_date or not contract_type:
        raise MissingParameterError(["ticker", "expirationDate", "contractType"])

    sources = sources_factory(settings)
    return assemble_chain(sources, ticker.upper(), expiration_date, contract_type.lower())


@app.get("/api/expiration-dates", response_model=ExpirationDatesResponse)
def get_expiration_dates(
    ticker: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    sources_factory: Callable[[Settings], PolygonSources] = Depends(get_sources_factory),
):
    if not ticker:
        raise MissingParameterError(["ticker"])

    sources = sources_factory(settings)
    return ExpirationDatesResponse(expiration_dates=list_expiration_dates(sources, ticker.upper()))


def run():
    import uvicorn

    settings = load_settings()
    configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
