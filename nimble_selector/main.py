"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from nimble_selector.api.routes import selector
from nimble_selector.config import Settings, get_settings
from nimble_selector.core.catalog import JsonContentCatalog
from nimble_selector.core.content_index import ContentIndex
from nimble_selector.core.orchestrator import SelectorOrchestrator
from nimble_selector.core.resource_loader import FileResourceLoader
from nimble_selector.core.rule_data import RuleDataStore
from nimble_selector.database.engine import close_db, init_db
from nimble_selector.middleware.error_handler import setup_error_handlers

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("nimble_selector.main")


def build_orchestrator(settings: Settings) -> SelectorOrchestrator:
    """Wire the rule store and content index from the configured data paths."""
    rule_data = RuleDataStore(FileResourceLoader(settings.RULES_DATA_PATH))
    content_index = ContentIndex(JsonContentCatalog(settings.CATALOG_PATH))
    return SelectorOrchestrator(
        rule_data,
        content_index,
        auto_select_features=settings.AUTO_SELECT_FEATURES,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events - startup and shutdown."""
    await init_db()
    logger.info("[Startup] Database initialized")

    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator(settings)
    await app.state.orchestrator.ensure_ready()
    logger.info(f"[Startup] Selector ready: {app.state.orchestrator.content_index.stats()}")

    yield  # Application runs here

    await close_db()
    logger.info("[Shutdown] Database connections closed")


app = FastAPI(
    title="Nimble Selector",
    description="Class feature, spell and equipment selection for Nimble characters",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.debug(f"[Request] {request.method} {request.url.path} -> {response.status_code}")
    return response


# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


setup_error_handlers(app, debug=settings.DEBUG)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "online", "service": "Nimble Selector", "version": "0.1.0"}


@app.get("/health")
async def health_check():
    """Detailed health check."""
    orchestrator = getattr(app.state, "orchestrator", None)
    return {
        "status": "healthy",
        "selector_ready": bool(orchestrator and orchestrator.ready),
        "debug_mode": settings.DEBUG,
    }


app.include_router(selector.router, prefix="/api/selector", tags=["selector"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("nimble_selector.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
