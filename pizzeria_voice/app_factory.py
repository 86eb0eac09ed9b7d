# pizzeria_voice/app_factory.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .agent_client import Connector, UpstreamAdapter
from .catalog import Catalog
from .coordinator import FunctionCallCoordinator
from .http_routes import http_router
from .relay import RelayBridge
from .session import SessionRegistry
from .settings import Settings, get_settings
from .ws_bridge import router as ws_router

log = logging.getLogger("app")


def _setup_logging(settings: Settings):
    level = logging.getLevelName(settings.log_level)
    fmt = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    logging.basicConfig(level=level, format=fmt, datefmt=datefmt)
    # Quieter websockets spam
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(level)


def create_app(settings: Optional[Settings] = None, connector: Optional[Connector] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        s = settings or get_settings()  # raises ConfigError without OPENAI_API_KEY
        _setup_logging(s)
        catalog = Catalog.from_file(s.catalog_path)
        registry = SessionRegistry()
        adapter = UpstreamAdapter(s, catalog, connector=connector)
        coordinator = FunctionCallCoordinator(adapter, catalog, s)

        app.state.settings = s
        app.state.catalog = catalog
        app.state.registry = registry
        app.state.bridge = RelayBridge(registry, adapter, coordinator, s)
        log.info(f"🚀 Relay starting (model={s.realtime_model}, language={s.agent_language})")
        try:
            yield
        finally:
            log.info(f"🔌 Relay shutting down, closing {len(registry)} session(s)...")
            await registry.close_all()

    app = FastAPI(title="Pizzeria Voice Relay", lifespan=lifespan)
    app.include_router(http_router)
    app.include_router(ws_router)
    return app
