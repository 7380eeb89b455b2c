"""
Central configuration for the goods-receipt reconciliation service.

All endpoints, paths and GST settings are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/receiving_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

# Default data locations (relative to project root)
DEFAULT_OUTPUT_DIR     = PROJECT_ROOT / "output"
DEFAULT_CACHE_DB_PATH  = DEFAULT_OUTPUT_DIR / "receiving.db"
DEFAULT_EXPORT_DIR     = DEFAULT_OUTPUT_DIR / "export"

SETTINGS_FILENAME = "receiving_settings.json"


def config_dir() -> Path:
    return Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))


@dataclass
class Config:
    # --- Record-keeping service (source of truth for POs and receipts) ---
    records_api_url: str = field(
        default_factory=lambda: os.getenv("RECORDS_API_URL", "http://localhost:5000/api")
    )
    records_api_timeout: int = field(
        default_factory=lambda: int(os.getenv("RECORDS_API_TIMEOUT", "30"))
    )
    records_api_token: Optional[str] = field(
        default_factory=lambda: os.getenv("RECORDS_API_TOKEN")
    )

    # --- Local cache / output ---
    output_dir:    Path = field(default_factory=lambda: DEFAULT_OUTPUT_DIR)
    cache_db_path: Path = field(
        default_factory=lambda: Path(os.getenv("CACHE_DB_PATH", str(DEFAULT_CACHE_DB_PATH)))
    )
    export_dir:    Path = field(
        default_factory=lambda: Path(os.getenv("EXPORT_DIR", str(DEFAULT_EXPORT_DIR)))
    )

    # --- GST ---
    # Vendors whose GSTIN starts with intra_state_prefix pay CGST + SGST,
    # everyone else pays IGST.
    intra_state_prefix: str = field(
        default_factory=lambda: os.getenv("GST_INTRA_STATE_PREFIX", "24")
    )
    cgst_rate: Decimal = field(
        default_factory=lambda: Decimal(os.getenv("GST_CGST_RATE", "0.09"))
    )
    sgst_rate: Decimal = field(
        default_factory=lambda: Decimal(os.getenv("GST_SGST_RATE", "0.09"))
    )
    igst_rate: Decimal = field(
        default_factory=lambda: Decimal(os.getenv("GST_IGST_RATE", "0.18"))
    )

    # --- Printable receipt export ---
    receipt_template: str = field(
        default_factory=lambda: os.getenv("RECEIPT_TEMPLATE", "receipt_export_template.xml.j2")
    )

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from receiving_settings.json if present."""
        settings_file = config_dir() / SETTINGS_FILENAME
        if not settings_file.exists():
            return
        _type_map = {
            "records_api_url":      str,
            "records_api_timeout":  int,
            "intra_state_prefix":   str,
            "cgst_rate":            _decimal,
            "sgst_rate":            _decimal,
            "igst_rate":            _decimal,
            "receipt_template":     str,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                # Environment variables win over the settings file
                if key in _ENV_NAMES and os.getenv(_ENV_NAMES[key]) is not None:
                    continue
                if key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load %s: %s", SETTINGS_FILENAME, exc)

    def ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.export_dir.mkdir(parents=True, exist_ok=True)


_ENV_NAMES = {
    "records_api_url":     "RECORDS_API_URL",
    "records_api_timeout": "RECORDS_API_TIMEOUT",
    "intra_state_prefix":  "GST_INTRA_STATE_PREFIX",
    "cgst_rate":           "GST_CGST_RATE",
    "sgst_rate":           "GST_SGST_RATE",
    "igst_rate":           "GST_IGST_RATE",
    "receipt_template":    "RECEIPT_TEMPLATE",
}


def _decimal(value) -> Decimal:
    return Decimal(str(value))
