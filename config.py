"""
Central configuration for the document ledger.

Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/ledger_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"
DEFAULT_DB_PATH    = DEFAULT_OUTPUT_DIR / "ledger.db"
DEFAULT_EXPORT_DIR = DEFAULT_OUTPUT_DIR / "export"

BACKEND_SQLITE   = "sqlite"
BACKEND_SUPABASE = "supabase"

# Keys settable from ledger_settings.json, with the type each is coerced to.
# Environment variables set for a key always win over the file.
_SETTINGS = {
    "backend":                    ("LEDGER_BACKEND", str),
    "block_cancel_after_payment": ("BLOCK_CANCEL_AFTER_PAYMENT", bool),
    "currency_symbol":            ("CURRENCY_SYMBOL", str),
    "currency_decimals":          ("CURRENCY_DECIMALS", int),
    "digit_grouping":             ("DIGIT_GROUPING", str),
    "pdf_currency_prefix":        ("PDF_CURRENCY_PREFIX", str),
}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("false", "0", "no", "off")


@dataclass
class Config:
    # --- Backend ---
    # sqlite   → local Database file at db_path (development, CLI, tests)
    # supabase → hosted tables via SUPABASE_URL / SUPABASE_KEY
    backend: str = field(
        default_factory=lambda: os.getenv("LEDGER_BACKEND", BACKEND_SQLITE).lower()
    )
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )
    supabase_url: Optional[str] = field(default_factory=lambda: os.getenv("SUPABASE_URL"))
    supabase_key: Optional[str] = field(default_factory=lambda: os.getenv("SUPABASE_KEY"))

    # --- Transition policy ---
    # When true, bills and invoices with a completed payment no longer offer
    # cancel (internal) or cancel_request (portal).
    block_cancel_after_payment: bool = field(
        default_factory=lambda: _env_bool("BLOCK_CANCEL_AFTER_PAYMENT", True)
    )

    # --- Display ---
    currency_symbol: str = field(default_factory=lambda: os.getenv("CURRENCY_SYMBOL", "₹"))
    currency_decimals: int = field(
        default_factory=lambda: int(os.getenv("CURRENCY_DECIMALS", "0"))
    )
    digit_grouping: str = field(
        default_factory=lambda: os.getenv("DIGIT_GROUPING", "indian").lower()
    )
    # Built-in PDF fonts are latin-1 only, so PDFs use a text prefix.
    pdf_currency_prefix: str = field(
        default_factory=lambda: os.getenv("PDF_CURRENCY_PREFIX", "INR ")
    )

    # --- Output ---
    output_dir: Path = field(default_factory=lambda: DEFAULT_OUTPUT_DIR)
    export_dir: Path = field(
        default_factory=lambda: Path(os.getenv("EXPORT_DIR", str(DEFAULT_EXPORT_DIR)))
    )
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from ledger_settings.json if present."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / "ledger_settings.json"
        if not settings_file.exists():
            return
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to load ledger_settings.json: %s", exc)
            return
        for key, val in overrides.items():
            if key not in _SETTINGS:
                logger.warning("Ignoring unknown setting %r in %s", key, settings_file)
                continue
            env_name, cast = _SETTINGS[key]
            if os.getenv(env_name) is not None:
                continue
            setattr(self, key, cast(val))

    def ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.export_dir.mkdir(parents=True, exist_ok=True)


def build_policy(config: Config):
    from ledger.policy import TransitionPolicy
    return TransitionPolicy(block_cancel_after_payment=config.block_cancel_after_payment)


def build_store(config: Config):
    """Return the DocumentStore selected by config.backend."""
    if config.backend == BACKEND_SUPABASE:
        from ledger.supabase_store import SupabaseStore, get_supabase_client
        return SupabaseStore(get_supabase_client(config.supabase_url, config.supabase_key))
    if config.backend == BACKEND_SQLITE:
        from ledger.database import Database
        return Database(config.db_path)
    raise ValueError(f"Unknown LEDGER_BACKEND {config.backend!r} (expected sqlite or supabase)")
