from wealth_manager.data_sources.base import MarketDataProvider
from wealth_manager.data_sources.mock_provider import MockMarketDataProvider
from wealth_manager.data_sources.remote_api_provider import RemoteAPIMarketDataProvider
from wealth_manager.schemas import DATA_SOURCE_MOCK, DataSource


def build_provider(
    data_source: DataSource,
    api_provider: RemoteAPIMarketDataProvider,
    mock_provider: MockMarketDataProvider | None = None,
) -> MarketDataProvider:
    if data_source == DATA_SOURCE_MOCK:
        return mock_provider or MockMarketDataProvider()
    return api_provider
