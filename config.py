"""
Central configuration for the purchasing service.

All paths, rates and consistency settings are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/purchasing_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

# Default data locations (relative to project root)
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"
DEFAULT_DB_PATH    = DEFAULT_OUTPUT_DIR / "purchasing.db"

DEFAULT_TAX_RATE = 0.12     # 12% VAT


@dataclass
class Config:
    # --- Storage ---
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )

    # --- Order totals ---
    tax_rate: float = field(
        default_factory=lambda: float(os.getenv("TAX_RATE", str(DEFAULT_TAX_RATE)))
    )

    # --- Consistency ---
    stock_update_mode: str = field(
        default_factory=lambda: os.getenv("STOCK_UPDATE_MODE", "atomic")
    )
    # atomic            → single-statement increment, safe under concurrent receipts
    # read_modify_write → read stock, add, write back (legacy; concurrent receipts can be lost)
    transactional_receiving: bool = field(
        default_factory=lambda: os.getenv("TRANSACTIONAL_RECEIVING", "true").lower() != "false"
    )
    # When true, receive_item's item update, stock change and status check
    # commit or roll back together.

    # --- Listing ---
    default_page_size: int = 25
    max_page_size:     int = 200

    # --- API server ---
    api_host: str = field(default_factory=lambda: os.getenv("API_HOST", "127.0.0.1"))
    api_port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8000")))

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from purchasing_settings.json if present."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / "purchasing_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "tax_rate":                 float,
            "stock_update_mode":        str,
            "transactional_receiving":  bool,
            "default_page_size":        int,
            "max_page_size":            int,
        }
        _env_names = {
            "tax_rate":                 "TAX_RATE",
            "stock_update_mode":        "STOCK_UPDATE_MODE",
            "transactional_receiving":  "TRANSACTIONAL_RECEIVING",
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key in _env_names and os.getenv(_env_names[key]) is not None:
                    continue
                if key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load purchasing_settings.json: %s", exc)

    def ensure_output_dir(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
