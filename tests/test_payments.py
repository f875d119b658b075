"""Tests for the payment gate and its middleware."""
import base64
import json
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient

from app.errors import ConfigurationError
from app.main import create_app
from app.payments import (
    FacilitatorPaymentGate,
    PaymentDecision,
    RouteConfig,
    parse_price,
    to_atomic_units,
)
from conftest import GOOD_RESULT, START_FEN, UpstreamStub

PAYMENT = {"x402Version": 1, "scheme": "exact", "network": "base-sepolia", "payload": {"signature": "0xsig"}}


def encode(payload) -> str:
    return base64.b64encode(json.dumps(payload).encode()).decode()


class FacilitatorStub:
    def __init__(self, status_code=200, verdict=None, content=None):
        self.status_code = status_code
        self.verdict = verdict if verdict is not None else {"isValid": True}
        self.content = content
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.verdict)


@pytest.fixture
def gateway(settings):
    def _make(facilitator):
        gate = FacilitatorPaymentGate(
            settings.address,
            settings.facilitator_url,
            transport=httpx.MockTransport(facilitator.handler),
        )
        upstream = UpstreamStub()
        app = create_app(settings, gate=gate, analysis_client=upstream.client())
        return TestClient(app), upstream

    return _make


class TestPricing:
    def test_parse_price(self):
        assert parse_price("$0.001") == Decimal("0.001")
        assert parse_price("0.25") == Decimal("0.25")

    def test_atomic_units(self):
        assert to_atomic_units("$0.001") == "1000"
        assert to_atomic_units("$1") == "1000000"

    @pytest.mark.parametrize("price", ["free", "$0", "$-1", "$"])
    def test_invalid_price(self, price):
        with pytest.raises(ConfigurationError):
            parse_price(price)

    @pytest.mark.parametrize("network", ["polygon", "polygon-amoy", "solana-devnet"])
    def test_route_config_accepts_known_networks(self, network):
        assert RouteConfig(price="$0.001", network=network).network == network

    def test_route_config_rejects_unknown_network(self):
        with pytest.raises(ConfigurationError):
            RouteConfig(price="$0.001", network="dogecoin")


class TestPaymentDecision:
    def test_allow_and_deny(self):
        assert PaymentDecision.allow().allowed is True
        denied = PaymentDecision.deny("nope")
        assert denied.allowed is False
        assert denied.reason == "nope"
        assert denied.accepts == []


class TestFacilitatorGate:
    def test_missing_header_advertises_requirements(self, gateway, settings):
        facilitator = FacilitatorStub()
        client, upstream = gateway(facilitator)

        resp = client.get("/best-move", params={"fen": START_FEN})

        assert resp.status_code == 402
        body = resp.json()
        assert body["x402Version"] == 1
        assert body["error"] == "X-PAYMENT header is required"
        req = body["accepts"][0]
        assert req["scheme"] == "exact"
        assert req["network"] == "base-sepolia"
        assert req["maxAmountRequired"] == "1000"
        assert req["payTo"] == settings.address
        assert req["resource"] == "http://testserver/best-move"
        assert req["asset"] == "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
        assert req["outputSchema"]["input"]["discoverable"] is True
        assert req["outputSchema"]["input"]["queryParams"]["fen"]["required"] is True
        assert req["outputSchema"]["input"]["queryParams"]["depth"]["required"] is False
        assert req["outputSchema"]["output"]["required"] == ["success", "evaluation", "bestmove", "mate"]
        assert facilitator.requests == []
        assert upstream.requests == []

    def test_malformed_header(self, gateway):
        facilitator = FacilitatorStub()
        client, upstream = gateway(facilitator)

        resp = client.get(
            "/best-move", params={"fen": START_FEN}, headers={"X-PAYMENT": "not-base64!!"}
        )

        assert resp.status_code == 402
        assert resp.json()["error"] == "Invalid or malformed payment header"
        assert facilitator.requests == []

    def test_valid_payment_reaches_handler(self, gateway):
        facilitator = FacilitatorStub(verdict={"isValid": True, "payer": "0xpayer"})
        client, upstream = gateway(facilitator)

        resp = client.get(
            "/best-move", params={"fen": START_FEN}, headers={"X-PAYMENT": encode(PAYMENT)}
        )

        assert resp.status_code == 200
        assert resp.json() == GOOD_RESULT
        assert len(upstream.requests) == 1

        verify = facilitator.requests[0]
        assert str(verify.url) == "https://facilitator.test/verify"
        sent = json.loads(verify.content)
        assert sent["paymentPayload"] == PAYMENT
        assert sent["paymentRequirements"]["maxAmountRequired"] == "1000"

    def test_rejected_payment(self, gateway):
        facilitator = FacilitatorStub(verdict={"isValid": False, "invalidReason": "insufficient_funds"})
        client, upstream = gateway(facilitator)

        resp = client.get(
            "/best-move", params={"fen": START_FEN}, headers={"X-PAYMENT": encode(PAYMENT)}
        )

        assert resp.status_code == 402
        assert resp.json()["error"] == "insufficient_funds"
        assert upstream.requests == []

    def test_facilitator_error(self, gateway):
        client, upstream = gateway(FacilitatorStub(status_code=500, verdict={}))

        resp = client.get(
            "/best-move", params={"fen": START_FEN}, headers={"X-PAYMENT": encode(PAYMENT)}
        )

        assert resp.status_code == 402
        assert resp.json()["error"] == "Facilitator returned 500"
        assert upstream.requests == []

    @pytest.mark.parametrize("content", [b"<html>ok</html>", b"[true]", b"\"valid\""])
    def test_unreadable_facilitator_reply(self, gateway, content):
        client, upstream = gateway(FacilitatorStub(content=content))

        resp = client.get(
            "/best-move", params={"fen": START_FEN}, headers={"X-PAYMENT": encode(PAYMENT)}
        )

        assert resp.status_code == 402
        assert resp.json()["error"] == "Invalid facilitator response"
        assert resp.json()["accepts"][0]["maxAmountRequired"] == "1000"
        assert upstream.requests == []


class TestMiddleware:
    def test_gate_exception_returns_500(self, settings):
        class BrokenGate:
            async def authorize(self, request, route):
                raise RuntimeError("facilitator down")

        upstream = UpstreamStub()
        client = TestClient(create_app(settings, gate=BrokenGate(), analysis_client=upstream.client()))

        resp = client.get("/best-move", params={"fen": START_FEN})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Payment verification failed", "message": "facilitator down"}
        assert upstream.requests == []

    def test_gate_sees_route_config(self, settings):
        seen = []

        class RecordingGate:
            async def authorize(self, request, route):
                seen.append(route)
                return PaymentDecision.allow()

        client = TestClient(create_app(settings, gate=RecordingGate(), analysis_client=UpstreamStub().client()))
        client.get("/best-move", params={"fen": START_FEN})
        client.get("/healthz")

        assert len(seen) == 1
        assert seen[0].price == "$0.001"
        assert seen[0].network == "base-sepolia"
        assert seen[0].input_schema["method"] == "GET"
