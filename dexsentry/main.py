import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dexsentry import __version__
from dexsentry.api.routes import router
from dexsentry.config import DASHBOARD_HOST, DASHBOARD_PORT, DASHBOARD_REFRESH, DEDUP_POLICY, RESULTS_DIR
from dexsentry.models.records import DedupPolicy
from dexsentry.storage.results import ResultStore

log = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def create_app(
    results_dir: Path | str = RESULTS_DIR,
    dedup_policy: DedupPolicy | str = DEDUP_POLICY,
    refresh: int = DASHBOARD_REFRESH,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("dashboard reading results from %s", app.state.store.results_dir)
        yield

    app = FastAPI(title="DEX Security Dashboard", version=__version__, lifespan=lifespan)
    app.state.store = ResultStore(results_dir)
    app.state.dedup_policy = DedupPolicy(dedup_policy)
    app.state.refresh = refresh

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


def serve(
    host: str = DASHBOARD_HOST,
    port: int = DASHBOARD_PORT,
    results_dir: Path | str = RESULTS_DIR,
    dedup_policy: Optional[str] = None,
) -> None:
    import uvicorn

    setup_logging()
    app = create_app(results_dir, dedup_policy or DEDUP_POLICY)
    log.info("dashboard running on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")


app = create_app()
