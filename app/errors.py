# === app/errors.py ===
from typing import List, Optional


class ConfigurationError(Exception):
    """Raised at startup when the gateway cannot be configured."""


class SchemaDefinitionError(ConfigurationError):
    """A declared object shape is malformed."""


class UpstreamError(Exception):
    """The analysis API answered with a non-2xx status."""

    def __init__(self, status_code: int, status_text: str = ""):
        self.status_code = status_code
        self.status_text = status_text
        super().__init__(f"Stockfish API returned {status_code}: {status_text}")


class UpstreamValidationError(Exception):
    """The analysis API answered 2xx but the body has the wrong shape."""

    def __init__(self, details: Optional[List[str]] = None):
        self.details = details or []
        summary = "; ".join(self.details) if self.details else "unexpected body"
        super().__init__(f"Stockfish API response failed validation: {summary}")
