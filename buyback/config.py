"""
Configuration for the buyback relay.

Everything comes from environment variables; ``run.py`` loads ``.env`` files
first so local setups can keep secrets out of the shell.
"""

import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

MODE_ACTOR = "actor"
MODE_DETECTOR = "detector"
MODE_AUTO = "auto"

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_JUPITER_API = "https://quote-api.jup.ag/v6"
DEFAULT_ASSET_ROOT = Path(__file__).resolve().parent / "public"

# Values shipped in example env files; treated as "not configured".
PLACEHOLDER_PRIVATE_KEY = "YOUR_PRIVATE_KEY_HERE"
PLACEHOLDER_TOKEN_ADDRESS = "YOUR_TOKEN_MINT_ADDRESS"
PLACEHOLDER_WALLET_ADDRESS = "YOUR_WALLET_ADDRESS"


class ConfigError(ValueError):
    """Raised when an environment value cannot be parsed or is out of range."""
    pass


@dataclass
class BuybackConfig:
    """Configuration for the buyback relay."""

    # Identity
    token_address: str = ""
    private_key: str = ""  # base58 secret key, Actor mode only
    wallet_address: str = ""  # watched address, Detector mode only

    mode: str = MODE_AUTO

    # Network
    rpc_url: str = DEFAULT_RPC_URL
    jupiter_api_url: str = DEFAULT_JUPITER_API

    # Schedule
    interval_seconds: float = 20.0
    actor_warmup_seconds: float = 5.0

    # Purchase settings
    buyback_amount_sol: Decimal = Decimal("0.01")
    fee_reserve_sol: Decimal = Decimal("0.005")
    slippage_bps: int = 100
    token_decimals: int = 6

    # Detector settings
    signature_limit: int = 10
    dust_threshold_sol: Decimal = Decimal("0.001")

    # Server
    host: str = "0.0.0.0"
    port: int = 3003
    ws_path: str = "/"
    asset_root: Path = DEFAULT_ASSET_ROOT

    def __post_init__(self):
        """Normalise placeholders, resolve the operating mode and check ranges."""
        if self.private_key == PLACEHOLDER_PRIVATE_KEY:
            self.private_key = ""
        if self.token_address == PLACEHOLDER_TOKEN_ADDRESS:
            self.token_address = ""
        if self.wallet_address == PLACEHOLDER_WALLET_ADDRESS:
            self.wallet_address = ""

        mode = (self.mode or MODE_AUTO).strip().lower()
        if mode == MODE_AUTO:
            mode = MODE_ACTOR if self.private_key else MODE_DETECTOR
        if mode not in (MODE_ACTOR, MODE_DETECTOR):
            raise ConfigError(f"Unknown BUYBACK_MODE: {self.mode!r}")
        self.mode = mode

        if not self.interval_seconds > 0:
            raise ConfigError(
                f"BUYBACK_INTERVAL_SECONDS must be positive, got {self.interval_seconds!r}"
            )
        if self.signature_limit < 1:
            raise ConfigError(f"SIGNATURE_LIMIT must be at least 1, got {self.signature_limit!r}")
        self.asset_root = Path(self.asset_root)

    @property
    def min_required_sol(self) -> Decimal:
        """Balance needed before the actor attempts a purchase."""
        return self.buyback_amount_sol + self.fee_reserve_sol

    @property
    def is_configured(self) -> bool:
        """Whether the selected mode has the identity it needs."""
        if not self.token_address:
            return False
        if self.mode == MODE_ACTOR:
            return bool(self.private_key)
        return bool(self.wallet_address)

    @property
    def initial_delay(self) -> float:
        return self.actor_warmup_seconds if self.mode == MODE_ACTOR else 0.0


def _env(name: str, default: str = "") -> str:
    return (os.environ.get(name, default) or default).strip()


def _env_decimal(name: str, default: str) -> Decimal:
    raw = _env(name, default)
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def load_config() -> BuybackConfig:
    """Load configuration from environment variables."""
    asset_root = _env("ASSET_ROOT")

    config = BuybackConfig(
        token_address=_env("TOKEN_ADDRESS"),
        private_key=_env("DEV_WALLET_PK"),
        wallet_address=_env("WALLET_ADDRESS"),
        mode=_env("BUYBACK_MODE", MODE_AUTO),
        rpc_url=_env("SOLANA_RPC", DEFAULT_RPC_URL),
        jupiter_api_url=_env("JUPITER_API_URL", DEFAULT_JUPITER_API).rstrip("/"),
        interval_seconds=_env_float("BUYBACK_INTERVAL_SECONDS", 20.0),
        buyback_amount_sol=_env_decimal("BUYBACK_AMOUNT_SOL", "0.01"),
        fee_reserve_sol=_env_decimal("FEE_RESERVE_SOL", "0.005"),
        slippage_bps=_env_int("SLIPPAGE_BPS", 100),
        token_decimals=_env_int("TOKEN_DECIMALS", 6),
        signature_limit=_env_int("SIGNATURE_LIMIT", 10),
        host=_env("HOST", "0.0.0.0"),
        port=_env_int("PORT", 3003),
        asset_root=Path(asset_root) if asset_root else DEFAULT_ASSET_ROOT,
    )

    if not config.is_configured:
        if config.mode == MODE_ACTOR:
            logger.warning("Configure TOKEN_ADDRESS and DEV_WALLET_PK to enable buybacks")
        else:
            logger.warning("Configure TOKEN_ADDRESS and WALLET_ADDRESS to enable buyback detection")

    return config


def describe(config: BuybackConfig) -> Optional[str]:
    """One-line summary for the startup banner."""
    if not config.is_configured:
        return None
    return (
        f"mode={config.mode} token={config.token_address} "
        f"interval={config.interval_seconds:g}s"
    )
