"""
Sommelier Stats - Main FastAPI Application
Circulating supply and auction data served from in-memory caches kept
fresh by background poll loops
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Path, Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from config.settings import Settings, settings as default_settings
from sommstats import schemas
from sommstats.accounting import circulating_supply
from sommstats.cache import BALANCE_FEEDS, CacheFeed, CacheStore, Feed, get_period_for_feed
from sommstats.chain.client import ClientFactory, rest_client_factory
from sommstats.errors import CacheUnpopulatedError
from sommstats.refresh import build_refreshers
from sommstats.retry import RetryPolicy
from sommstats.scheduler import Scheduler
from sommstats.snapshot import take_cache_snapshot, try_load_snapshot

# Version tracking
APP_VERSION = "v0.3.0"
APP_NAME = "Sommelier Stats"

logging.basicConfig(level=default_settings.log_level)
logger = logging.getLogger("main")

MAX_AUCTION_ID = 2 ** 32 - 1


@dataclass
class Services:
    """Everything the routes need, built once per app."""
    settings: Settings
    store: CacheStore
    scheduler: Scheduler


def build_services(
    settings: Settings,
    client_factory: Optional[ClientFactory] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> Services:
    store = CacheStore()
    if client_factory is None:
        client_factory = rest_client_factory(settings.request_timeout_seconds)
    refreshers = build_refreshers(settings, store, client_factory, retry_policy)
    periods = {feed: get_period_for_feed(feed, settings) for feed in refreshers}
    return Services(
        settings=settings,
        store=store,
        scheduler=Scheduler(store, refreshers, periods),
    )


def start_services(services: Services) -> None:
    """
    Validate settings, warm the balances cache, and start polling.

    Raises:
        ConfigError: If the settings cannot drive the scheduler
    """
    settings = services.settings
    settings.validate_runtime()

    loaded = settings.snapshot_enabled and try_load_snapshot(services.store, settings.snapshot_path)
    if not loaded:
        logger.info("No balance snapshot, running initial balance sweep")
        results = services.scheduler.refresh_all(BALANCE_FEEDS)
        if settings.snapshot_enabled and all(results.values()):
            try:
                take_cache_snapshot(services.store, settings.snapshot_path)
            except OSError as e:
                logger.error(f"Failed to write snapshot after startup sweep: {e}")

    services.scheduler.start()


def stop_services(services: Services) -> None:
    services.scheduler.stop()
    settings = services.settings
    if settings.snapshot_enabled and services.store.is_populated(CacheFeed.BALANCES):
        try:
            take_cache_snapshot(services.store, settings.snapshot_path)
        except OSError as e:
            logger.error(f"Failed to write snapshot on shutdown: {e}")


def get_services(request: Request) -> Services:
    return request.app.state.services


def _error_response(status_code: int) -> Response:
    """Bare error status; details stay in the server log."""
    return Response(status_code=status_code)


router = APIRouter()


@router.get("/")
def root():
    """Liveness probe."""
    return Response(status_code=200)


@router.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/version")
def version_info():
    return {"name": APP_NAME, "version": APP_VERSION}


@router.get("/cache/stats")
def cache_stats(services: Services = Depends(get_services)):
    """Get cache and scheduler statistics."""
    return {
        "feeds": services.store.stats(),
        "scheduler": services.scheduler.get_stats(),
    }


@router.get("/v1/circulating-supply", response_model=schemas.CirculatingSupplyResponse)
def get_circulating_supply(services: Services = Depends(get_services)):
    """
    Circulating supply in whole tokens.

    Returns 503 until every non-circulating balance has been fetched at least once.
    """
    try:
        supply = circulating_supply(services.store, services.settings)
    except CacheUnpopulatedError as e:
        logger.warning(f"Circulating supply request failed due to missing balance for {e.key}")
        return _error_response(503)
    except Exception:
        logger.exception("Error computing circulating supply")
        return _error_response(500)
    return schemas.CirculatingSupplyResponse(circulating_supply=supply)


@router.get("/v1/auctions/active", response_model=schemas.AuctionsResponse)
def get_active_auctions(services: Services = Depends(get_services)):
    """Active auctions, refreshed inline first if the cache is stale."""
    try:
        services.scheduler.lazy_refresh(Feed.ACTIVE_AUCTIONS)
        auctions = services.store.read(CacheFeed.ACTIVE_AUCTIONS)
        return schemas.AuctionsResponse(
            auctions=[schemas.Auction.model_validate(a) for _, a in sorted(auctions.items())]
        )
    except Exception:
        logger.exception("Error serving active auctions")
        return _error_response(500)


@router.get("/v1/auctions/ended", response_model=schemas.AuctionsResponse)
def get_ended_auctions(services: Services = Depends(get_services)):
    """Ended auctions, refreshed inline only if nothing is cached yet."""
    try:
        services.scheduler.lazy_refresh(Feed.ENDED_AUCTIONS)
        auctions = services.store.read(CacheFeed.ENDED_AUCTIONS)
        return schemas.AuctionsResponse(
            auctions=[schemas.Auction.model_validate(a) for _, a in sorted(auctions.items())]
        )
    except Exception:
        logger.exception("Error serving ended auctions")
        return _error_response(500)


@router.get("/v1/auctions/{auction_id}", response_model=schemas.AuctionResponse)
def get_auction_by_id(
    auction_id: int = Path(..., ge=0, le=MAX_AUCTION_ID, description="Auction ID"),
    services: Services = Depends(get_services),
):
    """A single auction, looked up in the active cache and then the ended cache."""
    try:
        services.scheduler.lazy_refresh(Feed.ACTIVE_AUCTIONS)
        auction = services.store.get(CacheFeed.ACTIVE_AUCTIONS, auction_id)
        if auction is None:
            services.scheduler.lazy_refresh(Feed.ENDED_AUCTIONS)
            auction = services.store.get(CacheFeed.ENDED_AUCTIONS, auction_id)
        return schemas.AuctionResponse(
            auction=schemas.Auction.model_validate(auction) if auction is not None else None
        )
    except Exception:
        logger.exception(f"Error serving auction {auction_id}")
        return _error_response(500)


@router.get("/v1/auctions/{auction_id}/bids", response_model=schemas.BidsResponse)
def get_bids_by_auction_id(
    auction_id: int = Path(..., ge=0, le=MAX_AUCTION_ID, description="Auction ID"),
    services: Services = Depends(get_services),
):
    """Bids on an active auction, in the order the chain returned them."""
    try:
        services.scheduler.lazy_refresh(Feed.ACTIVE_AUCTIONS)
        services.scheduler.lazy_refresh(Feed.BIDS)
        bids = services.store.get(CacheFeed.BIDS_BY_AUCTION, auction_id) or ()
        return schemas.BidsResponse(bids=[schemas.Bid.model_validate(b) for b in bids])
    except Exception:
        logger.exception(f"Error serving bids for auction {auction_id}")
        return _error_response(500)


@router.get("/v1/prices", response_model=schemas.PricesResponse)
def get_prices(services: Services = Depends(get_services)):
    """Fee token prices derived from active auctions."""
    try:
        prices = services.store.read(CacheFeed.PRICE_BY_AUCTION)
        return schemas.PricesResponse(
            prices=[
                schemas.Price(
                    auction_id=auction_id,
                    unit_price_in_usomm=price.unit_price_in_usomm,
                    token_decimals=price.token_decimals,
                    token_contract=price.token_contract,
                    token_symbol=price.token_symbol,
                )
                for auction_id, price in sorted(prices.items())
            ]
        )
    except Exception:
        logger.exception("Error serving prices")
        return _error_response(500)


def create_app(
    settings: Optional[Settings] = None,
    client_factory: Optional[ClientFactory] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """Create and configure the FastAPI application"""
    if services is None:
        services = build_services(settings or default_settings, client_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(start_services, services)
        try:
            yield
        finally:
            await run_in_threadpool(stop_services, services)

    app = FastAPI(
        title=APP_NAME,
        description="Circulating supply and auction data for the Sommelier chain",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.services = services
    app.include_router(router)
    return app


app = create_app()
