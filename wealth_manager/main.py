from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wealth_manager.config import Settings, settings
from wealth_manager.errors import WealthManagerError, wealth_manager_error_handler
from wealth_manager.mock_data import DEMO_PORTFOLIO
from wealth_manager.routes import market_data, portfolios, schedules, symbol_lists
from wealth_manager.schemas import PortfolioCreate
from wealth_manager.services import ServiceContainer, build_services
from wealth_manager.telemetry import configure_logging, get_logger

logger = get_logger(__name__)


def seed_demo_portfolio(services: ServiceContainer) -> None:
    user_id = services.settings.default_user_id
    if services.portfolios.list_portfolios(user_id):
        return
    record = services.portfolios.create_portfolio(user_id, PortfolioCreate.model_validate(DEMO_PORTFOLIO))
    logger.info("demo_portfolio_seeded", extra={"user_id": user_id, "portfolio_id": record.id})


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or settings
    configure_logging(
        level=app_settings.log_level,
        log_format=app_settings.log_format,
        include_stack=app_settings.log_include_stack,
        redact_fields_raw=app_settings.log_redact_fields,
    )
    services = build_services(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.market_store.connect()
        if app_settings.seed_demo_portfolio:
            seed_demo_portfolio(services)
        if app_settings.scheduler_autostart:
            await services.scheduler.start()
        logger.info("app_started", extra={"data_source": app_settings.default_data_source})
        yield
        await services.scheduler.stop()
        await services.jobs.shutdown()
        services.market_store.disconnect()
        logger.info("app_stopped")

    app = FastAPI(title="Wealth Manager", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(WealthManagerError, wealth_manager_error_handler)

    app.include_router(portfolios.router)
    app.include_router(market_data.router)
    app.include_router(schedules.router)
    app.include_router(symbol_lists.router)

    @app.get("/health")
    async def health() -> dict[str, str | bool]:
        logger.debug("health_check", extra={"data_source": app_settings.default_data_source})
        return {
            "status": "ok",
            "data_source": app_settings.default_data_source,
            "scheduler_running": services.scheduler.is_running,
        }

    return app


app = create_app()
