from dataclasses import dataclass

from fastapi import Depends, Header, Request

from wealth_manager.config import Settings
from wealth_manager.data_sources import build_provider
from wealth_manager.data_sources.base import MarketDataProvider
from wealth_manager.data_sources.mock_provider import MockMarketDataProvider
from wealth_manager.data_sources.remote_api_provider import RemoteAPIMarketDataProvider
from wealth_manager.downloader import DownloadService
from wealth_manager.jobs import DownloadJobRegistry
from wealth_manager.market_data_client import MarketDataClient
from wealth_manager.market_store import MarketDataStore
from wealth_manager.portfolio_store import PortfolioStore
from wealth_manager.scheduler import UpdateScheduler
from wealth_manager.symbol_lists import SymbolListStore


@dataclass
class ServiceContainer:
    settings: Settings
    portfolios: PortfolioStore
    market_store: MarketDataStore
    provider: MarketDataProvider
    downloader: DownloadService
    jobs: DownloadJobRegistry
    scheduler: UpdateScheduler
    symbol_lists: SymbolListStore


def build_services(settings: Settings) -> ServiceContainer:
    api_provider = RemoteAPIMarketDataProvider(
        MarketDataClient(
            base_url=settings.market_data_base_url,
            api_key=settings.market_data_api_key or None,
            timeout_seconds=settings.request_timeout_seconds,
        )
    )
    mock_provider = MockMarketDataProvider(
        history_years=settings.mock_history_years,
        seed=settings.mock_seed,
        failure_rate=settings.mock_failure_rate,
        simulate_latency=settings.simulate_latency,
    )
    provider = build_provider(settings.default_data_source, api_provider, mock_provider)

    market_store = MarketDataStore()
    downloader = DownloadService(
        provider,
        market_store,
        batch_size=settings.download_batch_size,
        pause_seconds=settings.download_batch_pause_seconds,
    )
    scheduler = UpdateScheduler(
        downloader,
        market_store,
        poll_seconds=settings.scheduler_poll_seconds,
        timezone=settings.scheduler_timezone,
        scheduled_batch_size=settings.scheduled_update_batch_size,
        manual_batch_size=settings.manual_update_batch_size,
        manual_pause_seconds=settings.manual_update_pause_seconds,
    )
    return ServiceContainer(
        settings=settings,
        portfolios=PortfolioStore(),
        market_store=market_store,
        provider=provider,
        downloader=downloader,
        jobs=DownloadJobRegistry(downloader),
        scheduler=scheduler,
        symbol_lists=SymbolListStore(),
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_user_id(
    x_user_id: int | None = Header(default=None, alias="X-User-Id"),
    services: ServiceContainer = Depends(get_services),
) -> int:
    if x_user_id is None:
        return services.settings.default_user_id
    return x_user_id
