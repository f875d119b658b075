import sys
import time
from datetime import datetime, timezone
from html import escape

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

router = APIRouter()

EXAMPLE_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR%20w%20KQkq%20-%200%201"


def utc_timestamp() -> str:
    """ISO-8601 UTC with milliseconds, e.g. 2024-05-01T12:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


LANDING_PAGE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Chess Best Move x402 API</title>
    <link rel="icon" href="/favicon.ico" type="image/x-icon">
    <meta property="og:title" content="Chess Best Move x402 API" />
    <meta property="og:description" content="Get Stockfish chess analysis for any position - Monetized with x402" />
    <meta property="og:image" content="{base_url}/og-image.png" />
    <meta property="og:url" content="{base_url}" />
    <meta name="twitter:card" content="summary_large_image" />
    <style>
      body {{
        font-family: system-ui, -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
        max-width: 800px;
        margin: 40px auto;
        padding: 20px;
        line-height: 1.6;
        color: #333;
      }}
      h1 {{ color: #1a1a1a; }}
      .status {{ background: #e8f5e9; padding: 15px; border-radius: 8px; margin: 20px 0; }}
      .endpoint {{
        background: #f5f5f5;
        padding: 15px;
        border-radius: 8px;
        margin: 20px 0;
        font-family: 'Courier New', monospace;
      }}
      code {{ background: #f5f5f5; padding: 2px 6px; border-radius: 3px; }}
    </style>
  </head>
  <body>
    <h1>&#9823; Chess Best Move x402 API</h1>
    <div class="status">
      <p><strong>Status:</strong> healthy</p>
      <p><strong>Timestamp:</strong> {timestamp}</p>
      <p><strong>Uptime:</strong> {uptime}s</p>
      <p><strong>Version:</strong> Python {version}</p>
    </div>

    <h2>About</h2>
    <p>This API provides Stockfish chess engine analysis for any chess position using FEN notation.
    Each request costs {price} and is paid through the x402 payment protocol.</p>

    <h2>API Endpoint</h2>
    <div class="endpoint">GET /best-move?fen=&lt;FEN_STRING&gt;&amp;depth=&lt;DEPTH&gt;</div>

    <h3>Parameters</h3>
    <ul>
      <li><code>fen</code> (required): FEN string representing the chess position</li>
      <li><code>depth</code> (optional): Analysis depth (1-12, default: 10)</li>
    </ul>

    <h3>Example</h3>
    <div class="endpoint">{base_url}/best-move?fen={example_fen}&amp;depth=10</div>
  </body>
</html>
"""


@router.get("/", response_class=HTMLResponse)
def landing_page(request: Request):
    base_url = str(request.base_url).rstrip("/")
    uptime = int(time.monotonic() - request.app.state.started_at)
    return LANDING_PAGE.format(
        base_url=escape(base_url),
        timestamp=utc_timestamp(),
        uptime=uptime,
        version=sys.version.split()[0],
        price=escape(request.app.state.settings.price),
        example_fen=EXAMPLE_FEN,
    )


@router.get("/healthz")
def healthz():
    return {"status": "ok", "timestamp": utc_timestamp()}


# --- sample data (unprotected) ---------------------------------------------
@router.get("/api-data")
def api_data():
    return {
        "message": "Here is some sample API data",
        "items": ["apple", "banana", "cherry"],
    }


@router.get("/weather")
def weather():
    return {"report": {"weather": "sunny", "temperature": 70}}


@router.get("/premium/content")
def premium_content():
    return {"content": "This is premium content"}
