import asyncio
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from loguru import logger

from packet_engine.api.admin_packets import router as admin_packets_router
from packet_engine.api.intake import router as intake_router
from packet_engine.api.packets import router as packets_router
from packet_engine.config.settings import settings
from packet_engine.core.logger import setup_logger
from packet_engine.db.session import init_db
from packet_engine.queue.worker import PacketWorker

setup_logger(level=settings.log_level, log_file=settings.log_file or None)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Create tables and start the packet worker for the lifetime of the app."""
    init_db()

    worker = PacketWorker() if settings.worker_enabled else None
    if worker is not None:
        worker.start()
    else:
        logger.info("[SCHEDULER] Packet worker disabled (PACKET_WORKER_ENABLED=false)")

    await asyncio.sleep(0)
    yield

    if worker is not None:
        worker.stop()


app = FastAPI(title="Packet Engine", lifespan=lifespan)

app.include_router(intake_router)
app.include_router(packets_router)
app.include_router(admin_packets_router)

logger.info("FastAPI application initialized")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    logger.debug(f"Request: {request.method} {request.url.path}")
    response = await call_next(request)
    logger.debug(f"Response: {response.status_code} for {request.method} {request.url.path}")
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("packet_engine.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
