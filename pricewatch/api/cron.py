# pricewatch/api/cron.py

"""HTTP trigger an external scheduler calls to run one update cycle."""

import logging
from collections.abc import Callable

from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse

from pricewatch.config.settings import Settings
from pricewatch.services.batch_orchestrator import BatchOrchestrator

logger = logging.getLogger("pricewatch.api")


def _authorised(authorization: str | None, secret: str) -> bool:
    if not secret:
        return True
    return authorization == f"Bearer {secret}"


def _failure(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "message": f"Failed to update products: {exc}",
            "error": type(exc).__name__,
        },
    )


def create_app(
    orchestrator_factory: Callable[[], BatchOrchestrator],
    settings: Settings | None = None,
) -> FastAPI:
    """Build the API around a factory producing a fresh orchestrator.

    The factory runs per request so store connections are opened
    (and can fail) inside the handler, where failures become a 500.
    The orchestrator's store is closed once its cycle is over.
    """
    cfg = settings or Settings()
    app = FastAPI(
        title="pricewatch",
        description="Scheduled price tracker update trigger",
        version="0.1.0",
    )

    @app.get("/api/cron")
    async def run_cron(
        authorization: str | None = Header(default=None),
    ) -> JSONResponse:
        """Update every tracked product and report per-item outcomes."""
        if not _authorised(authorization, cfg.CRON_SECRET):
            return JSONResponse(
                status_code=401, content={"message": "Unauthorized"}
            )

        try:
            orchestrator = orchestrator_factory()
        except Exception as exc:
            logger.exception("Could not set up the cron cycle")
            return _failure(exc)
        try:
            summary = await orchestrator.run_cycle()
        except Exception as exc:
            logger.exception("Cron cycle failed")
            return _failure(exc)
        finally:
            orchestrator.store.close()

        if not summary.results:
            message = "No products found to update"
        else:
            message = (
                f"Updated {summary.updated_count} products, "
                f"{summary.failed_count} failed"
            )
        return JSONResponse(
            status_code=200,
            content={"message": message, "data": summary.to_dict()},
        )

    return app
