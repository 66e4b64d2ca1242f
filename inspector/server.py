from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from inspector.api import routes
from inspector.core.cleanup import start_cleanup_loop


@asynccontextmanager
async def lifespan(_app: FastAPI):
    ctx = routes.ctx
    ctx.cfg.data_root.mkdir(parents=True, exist_ok=True)
    ctx.cfg.log_dir.mkdir(parents=True, exist_ok=True)
    ctx.db.init_schema()

    start_cleanup_loop(ctx.cfg, ctx.cache, ctx.leases)
    yield
    ctx.jobs.shutdown(wait=False)
    ctx.leases.release_all()


app = FastAPI(title="image-inspector", lifespan=lifespan)
app.include_router(routes.router)
