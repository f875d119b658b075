# === app/config.py ===
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from app.errors import ConfigurationError

# Load environment variables from .env (local dev) or system
load_dotenv()

STOCKFISH_API_URL = "https://stockfish.online/api/s/v2.php"
DEFAULT_PUBLIC_DIR = Path(__file__).resolve().parent.parent / "public"

REQUIRED_VARS = ("ADDRESS", "NETWORK", "FACILITATOR_URL")


class Settings(BaseModel):
    address: str
    network: str
    facilitator_url: str
    host: str = "0.0.0.0"
    port: int = 4021
    price: str = "$0.001"
    stockfish_api_url: str = STOCKFISH_API_URL
    public_dir: Path = DEFAULT_PUBLIC_DIR
    log_level: str = "INFO"

    model_config = {"frozen": True}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build the process settings once, failing on anything missing."""
    env = os.environ if environ is None else environ

    missing = [name for name in REQUIRED_VARS if not env.get(name)]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    port = env.get("PORT", "4021")
    try:
        port_number = int(port)
    except ValueError:
        raise ConfigurationError(f"PORT must be an integer, got {port!r}")

    return Settings(
        address=env["ADDRESS"],
        network=env["NETWORK"],
        facilitator_url=env["FACILITATOR_URL"].rstrip("/"),
        host=env.get("HOST", "0.0.0.0"),
        port=port_number,
        price=env.get("PRICE", "$0.001"),
        stockfish_api_url=env.get("STOCKFISH_API_URL", STOCKFISH_API_URL),
        public_dir=Path(env.get("PUBLIC_DIR", str(DEFAULT_PUBLIC_DIR))),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
