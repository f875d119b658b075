"""Shared fixtures: settings, stub gates and a mocked analysis API."""
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from app.payments import PaymentDecision
from app.utils.stockfish_api import StockfishClient

REPO_ROOT = Path(__file__).resolve().parent.parent

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

GOOD_RESULT = {"success": True, "evaluation": 0.37, "bestmove": "e2e4", "mate": None}


class AllowAllGate:
    def __init__(self):
        self.calls = 0

    async def authorize(self, request, route):
        self.calls += 1
        return PaymentDecision.allow()


class DenyAllGate:
    async def authorize(self, request, route):
        return PaymentDecision.deny("X-PAYMENT header is required", [{"scheme": "exact"}])


class UpstreamStub:
    """Canned analysis API that records every outbound request."""

    def __init__(self, status_code=200, json_body=None, content=None, exc=None):
        self.status_code = status_code
        self.json_body = GOOD_RESULT if json_body is None and content is None else json_body
        self.content = content
        self.exc = exc
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.json_body)

    def client(self) -> StockfishClient:
        return StockfishClient(
            "https://stockfish.test/api/s/v2.php",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def settings():
    return Settings(
        address="0x1111111111111111111111111111111111111111",
        network="base-sepolia",
        facilitator_url="https://facilitator.test",
        public_dir=REPO_ROOT / "public",
    )


@pytest.fixture
def upstream():
    return UpstreamStub()


@pytest.fixture
def make_client(settings):
    def _make(upstream=None, gate=None):
        upstream = upstream or UpstreamStub()
        app = create_app(settings, gate=gate or AllowAllGate(), analysis_client=upstream.client())
        return TestClient(app)

    return _make
