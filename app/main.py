import json
import logging
import os
import sys
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.config import Settings, load_settings
from app.errors import ConfigurationError
from app.payments import FacilitatorPaymentGate, PaymentGate, RouteConfig, payment_middleware
from app.routes import best_move, info
from app.schemas import ANALYSIS_RESULT_SHAPE, POSITION_QUERY_SHAPE
from app.utils.schema_descriptors import to_discovery_descriptor, to_generic_schema
from app.utils.stockfish_api import StockfishClient

logger = logging.getLogger("chessgate.main")


def build_protected_routes(settings: Settings) -> dict:
    """Route table handed to the payment gate, computed once at startup."""
    input_schema = to_discovery_descriptor(POSITION_QUERY_SHAPE)
    output_schema = to_generic_schema(ANALYSIS_RESULT_SHAPE)
    logger.debug(f"/best-move input schema: {json.dumps(input_schema)}")
    logger.debug(f"/best-move output schema: {json.dumps(output_schema)}")

    return {
        "GET /best-move": RouteConfig(
            price=settings.price,
            network=settings.network,
            description="Get stockfish analysis for a given FEN",
            discoverable=True,
            input_schema=input_schema,
            output_schema=output_schema,
        ),
    }


def create_app(
    settings: Settings,
    gate: Optional[PaymentGate] = None,
    analysis_client: Optional[StockfishClient] = None,
) -> FastAPI:
    app = FastAPI(title="Chess Best Move x402 API")

    app.state.settings = settings
    app.state.started_at = time.monotonic()
    app.state.analysis_client = analysis_client or StockfishClient(settings.stockfish_api_url)

    # 🌟 Log Origin header for every request
    @app.middleware("http")
    async def log_origin_header(request: Request, call_next):
        origin = request.headers.get("origin")
        if origin:
            logger.debug(f"Incoming request Origin: {origin}")
        return await call_next(request)

    if gate is None:
        gate = FacilitatorPaymentGate(settings.address, settings.facilitator_url)
    app.middleware("http")(payment_middleware(gate, build_protected_routes(settings)))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(best_move.router)
    app.include_router(info.router)

    # static assets go last so API routes win
    if settings.public_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.public_dir), name="public")
    else:
        logger.warning(f"Public directory {settings.public_dir} not found, skipping static files")

    logger.info(f"✅ Gateway configured: network={settings.network} price={settings.price}")
    return app


def main():
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    try:
        settings = load_settings()
        app = create_app(settings)
    except ConfigurationError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)

    logger.info(f"Server listening at http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
