import json
import logging
from typing import Any, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from app.config import STOCKFISH_API_URL
from app.errors import UpstreamError, UpstreamValidationError
from app.schemas import AnalysisResult

logger = logging.getLogger("chessgate.upstream")


def _describe_errors(exc: ValidationError) -> List[str]:
    # loc + msg only, never the offending upstream values
    details = []
    for err in exc.errors(include_input=False, include_url=False):
        loc = ".".join(str(part) for part in err["loc"]) or "body"
        details.append(f"{loc}: {err['msg']}")
    return details


class StockfishClient:
    """Single-shot client for the stockfish.online analysis API."""

    def __init__(
        self,
        base_url: str = STOCKFISH_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self._transport = transport

    def build_url(self, fen: str, depth: int) -> str:
        return f"{self.base_url}?fen={quote(fen, safe='')}&depth={depth}"

    async def fetch_best_move(self, fen: str, depth: int) -> Any:
        url = self.build_url(fen, depth)
        logger.info(f"[/best-move] Fetching: {url}")

        # one attempt, httpx default timeout
        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await client.get(url)

        if not resp.is_success:
            logger.error(
                f"[/best-move] API Error - Status: {resp.status_code} {resp.reason_phrase}"
            )
            raise UpstreamError(resp.status_code, resp.reason_phrase)

        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.error("[/best-move] Response body is not JSON")
            raise UpstreamValidationError(["body: response is not valid JSON"])

        logger.info(f"[/best-move] Raw API Response: {json.dumps(data, indent=2)}")

        try:
            result = AnalysisResult.model_validate(data)
        except ValidationError as e:
            details = _describe_errors(e)
            logger.error(f"[/best-move] Validation failed: {details}")
            raise UpstreamValidationError(details) from e

        logger.info("[/best-move] Validation successful")
        return result
