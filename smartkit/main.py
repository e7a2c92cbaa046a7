import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import health, transactions, wallets
from .config import settings
from .core.execution.receipt_poller import get_receipt_poller
from .logging_config import setup_logging
from .middleware.logging_middleware import RequestLoggingMiddleware
from .workers.stale_transactions import StaleTransactionWorker, run_stale_transaction_loop

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    poller = get_receipt_poller()

    if settings.recover_pending_on_startup:
        try:
            await poller.recover_pending()
        except Exception as e:
            logger.error(f"Pending transaction recovery failed: {e}")

    cleanup_task = None
    if settings.stale_cleanup_interval_seconds:
        cleanup_task = asyncio.create_task(
            run_stale_transaction_loop(
                StaleTransactionWorker(poller=poller),
                interval_seconds=settings.stale_cleanup_interval_seconds,
            )
        )

    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
        await asyncio.gather(cleanup_task, return_exceptions=True)
    await poller.shutdown()


# Create FastAPI app
app = FastAPI(
    title="SmartKit Relay API",
    description="ERC-4337 smart wallet relay: gasless UserOperations for your users",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(wallets.router)
app.include_router(transactions.router)


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "SmartKit Relay API",
        "version": "0.1.0",
        "chainId": settings.chain_id,
        "docs": "/docs",
        "health": "/healthz",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "smartkit.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
