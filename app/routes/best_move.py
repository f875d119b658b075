import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.schemas import MAX_DEPTH, MIN_DEPTH, PositionQuery

logger = logging.getLogger("chessgate.best_move")

router = APIRouter()


def _error(status_code: int, **content) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content)


@router.get(
    "/best-move",
    summary="Best move for a FEN position",
    description="Returns Stockfish evaluation, best move and mate distance for a given FEN.",
)
async def best_move(request: Request):
    # 1) validate query against the declared input shape
    query = dict(request.query_params)
    try:
        params = PositionQuery.model_validate(query)
    except ValidationError:
        return _error(400, error="Invalid request parameters, " + json.dumps(query))

    # 2) depth must parse and sit in range before we spend an upstream call
    try:
        depth = int(params.depth)
    except ValueError:
        depth = None
    if depth is None or not MIN_DEPTH <= depth <= MAX_DEPTH:
        return _error(
            400,
            error=f"Invalid depth, must be a plain integer between {MIN_DEPTH} and {MAX_DEPTH}, "
            f"got {params.depth}",
        )

    # 3) single upstream attempt
    client = request.app.state.analysis_client
    try:
        result = await client.fetch_best_move(params.fen, depth)
    except Exception as e:
        logger.exception("[/best-move] Error")
        return _error(
            500,
            error="Internal server error",
            message=str(e) or "Unknown error",
        )

    return result.model_dump()
