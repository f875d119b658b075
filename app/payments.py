# === app/payments.py ===
import base64
import binascii
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Protocol

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from app.errors import ConfigurationError

logger = logging.getLogger("chessgate.payments")

X402_VERSION = 1
USDC_DECIMALS = 6

# network -> (USDC contract / mint, EIP-712 domain extra)
USDC_ASSETS: Dict[str, tuple] = {
    "base": ("0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", {"name": "USD Coin", "version": "2"}),
    "base-sepolia": ("0x036CbD53842c5426634e7929541eC2318f3dCF7e", {"name": "USDC", "version": "2"}),
    "avalanche": ("0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E", {"name": "USD Coin", "version": "2"}),
    "avalanche-fuji": ("0x5425890298aed601595a70AB815c96711a31Bc65", {"name": "USD Coin", "version": "2"}),
    "polygon": ("0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359", {"name": "USD Coin", "version": "2"}),
    "polygon-amoy": ("0x41E94Eb019C0762f9Bfcf9Fb1E58725BfB0e7582", {"name": "USDC", "version": "2"}),
    "solana": ("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", None),
    "solana-devnet": ("4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU", None),
}


def parse_price(price: str) -> Decimal:
    """'$0.001' -> Decimal('0.001')"""
    raw = price.strip().lstrip("$").strip()
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ConfigurationError(f"Invalid price {price!r}")
    if not amount.is_finite() or amount <= 0:
        raise ConfigurationError(f"Price must be a positive amount, got {price!r}")
    return amount


def to_atomic_units(price: str) -> str:
    return str(int(parse_price(price) * (10**USDC_DECIMALS)))


# --- Route configuration ---------------------------------------------------
class RouteConfig(BaseModel):
    price: str
    network: str
    description: str = ""
    mime_type: str = "application/json"
    discoverable: bool = True
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    output_schema: Dict[str, Any] = Field(default_factory=dict)
    max_timeout_seconds: int = 60

    model_config = {"frozen": True}

    @field_validator("price")
    @classmethod
    def _check_price(cls, v: str) -> str:
        parse_price(v)
        return v

    @field_validator("network")
    @classmethod
    def _check_network(cls, v: str) -> str:
        if v not in USDC_ASSETS:
            raise ConfigurationError(
                f"Unsupported network {v!r}, expected one of {', '.join(USDC_ASSETS)}"
            )
        return v


class PaymentDecision(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    accepts: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def allow(cls) -> "PaymentDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str, accepts: Optional[List[Dict[str, Any]]] = None) -> "PaymentDecision":
        return cls(allowed=False, reason=reason, accepts=accepts or [])


class PaymentGate(Protocol):
    async def authorize(self, request: Request, route: RouteConfig) -> PaymentDecision:
        ...


# --- Facilitator-backed gate -----------------------------------------------
class FacilitatorPaymentGate:
    """Relays the X-PAYMENT header to a facilitator's /verify endpoint.

    The facilitator owns the payment protocol; this gate only turns its
    answer into allow / deny. Settlement is left to the facilitator.
    """

    def __init__(
        self,
        pay_to: str,
        facilitator_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.pay_to = pay_to
        self.facilitator_url = facilitator_url.rstrip("/")
        self._transport = transport

    def payment_requirements(self, request: Request, route: RouteConfig) -> Dict[str, Any]:
        asset, extra = USDC_ASSETS[route.network]
        return {
            "scheme": "exact",
            "network": route.network,
            "maxAmountRequired": to_atomic_units(route.price),
            "resource": str(request.url.replace(query="")),
            "description": route.description,
            "mimeType": route.mime_type,
            "payTo": self.pay_to,
            "maxTimeoutSeconds": route.max_timeout_seconds,
            "asset": asset,
            "outputSchema": {
                "input": {**route.input_schema, "discoverable": route.discoverable},
                "output": route.output_schema,
            },
            "extra": extra,
        }

    async def authorize(self, request: Request, route: RouteConfig) -> PaymentDecision:
        requirements = self.payment_requirements(request, route)

        header = request.headers.get("x-payment")
        if not header:
            return PaymentDecision.deny("X-PAYMENT header is required", [requirements])

        try:
            payload = json.loads(base64.b64decode(header, validate=True))
        except (binascii.Error, ValueError):
            return PaymentDecision.deny("Invalid or malformed payment header", [requirements])
        if not isinstance(payload, dict):
            return PaymentDecision.deny("Invalid or malformed payment header", [requirements])

        body = {
            "x402Version": payload.get("x402Version", X402_VERSION),
            "paymentPayload": payload,
            "paymentRequirements": requirements,
        }
        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await client.post(f"{self.facilitator_url}/verify", json=body)

        if not resp.is_success:
            logger.error(f"Facilitator verify failed: {resp.status_code} {resp.reason_phrase}")
            return PaymentDecision.deny(
                f"Facilitator returned {resp.status_code}", [requirements]
            )

        try:
            verdict = resp.json()
        except ValueError:
            verdict = None
        if not isinstance(verdict, dict):
            logger.error("Facilitator verify returned a non-object body")
            return PaymentDecision.deny("Invalid facilitator response", [requirements])

        if verdict.get("isValid") is True:
            return PaymentDecision.allow()
        reason = verdict.get("invalidReason") or "Payment verification failed"
        logger.info(f"Payment rejected for {request.url.path}: {reason}")
        return PaymentDecision.deny(reason, [requirements])


# --- Middleware --------------------------------------------------------------
def payment_middleware(gate: PaymentGate, routes: Mapping[str, RouteConfig]):
    """HTTP middleware gating the "<METHOD> <path>" keys in ``routes``."""

    async def gate_request(request: Request, call_next):
        route = routes.get(f"{request.method} {request.url.path}")
        if route is None:
            return await call_next(request)

        try:
            decision = await gate.authorize(request, route)
        except Exception as e:
            logger.exception(f"Payment gate error on {request.url.path}")
            return JSONResponse(
                status_code=500,
                content={"error": "Payment verification failed", "message": str(e)},
            )

        if not decision.allowed:
            return JSONResponse(
                status_code=402,
                content={
                    "x402Version": X402_VERSION,
                    "error": decision.reason,
                    "accepts": decision.accepts,
                },
            )
        return await call_next(request)

    return gate_request
