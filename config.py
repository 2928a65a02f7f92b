"""
Central configuration for the settlement engine.

Tolerances, rounding, labor rates and the pack-format matrix are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/engine_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from engine.quotation import DEFAULT_LABOR_MATRIX
from models.quotation import LaborMatrixEntry

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent
CONFIG_DIR = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))

DEFAULT_LABOR_MATRIX_PATH = CONFIG_DIR / "labor_matrix.json"


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


@dataclass
class Config:
    # --- Settlement ---
    settlement_tolerance: float = field(
        default_factory=lambda: _env_float("SETTLEMENT_TOLERANCE", "0.01")
    )
    # Absolute currency tolerance: settled amounts within one cent of the
    # target count as paid, and residues below it are not an overpayment.

    # --- Stocktaking ---
    quantity_precision: int = field(
        default_factory=lambda: int(os.getenv("QUANTITY_PRECISION", "3"))
    )
    discrepancy_epsilon: float = field(
        default_factory=lambda: _env_float("DISCREPANCY_EPSILON", "0.001")
    )

    # --- Quotation / labor ---
    cost_per_minute: float = field(
        default_factory=lambda: _env_float("COST_PER_MINUTE", "0")
    )
    minutes_per_gram: float = field(
        default_factory=lambda: _env_float("MINUTES_PER_GRAM", "0.003")
    )
    # Used when the pack format has no matrix entry: minutes = grams * rate
    pack_weight_options: list[int] = field(
        default_factory=lambda: [60, 90, 120, 180, 300, 900]
    )
    labor_matrix_path: Path = field(
        default_factory=lambda: Path(os.getenv("LABOR_MATRIX_PATH", str(DEFAULT_LABOR_MATRIX_PATH)))
    )

    # --- Caching (HTTP service) ---
    cache_ttl_seconds: int = field(
        default_factory=lambda: int(os.getenv("CACHE_TTL_SECONDS", "300"))
    )

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from engine_settings.json if present."""
        settings_file = CONFIG_DIR / "engine_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict = {
            "settlement_tolerance":  float,
            "quantity_precision":    int,
            "discrepancy_epsilon":   float,
            "cost_per_minute":       float,
            "minutes_per_gram":      float,
            "pack_weight_options":   lambda v: [int(w) for w in v],
            "cache_ttl_seconds":     int,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key in _type_map and hasattr(self, key) and not _env_overrides(key):
                    setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load engine_settings.json: %s", exc)

    def load_labor_matrix(self) -> list[LaborMatrixEntry]:
        """Read the pack-format time matrix; fall back to the built-in one."""
        if not self.labor_matrix_path.exists():
            logger.debug("Labor matrix not found at %s, using defaults", self.labor_matrix_path)
            return list(DEFAULT_LABOR_MATRIX)
        with open(self.labor_matrix_path, encoding="utf-8") as f:
            rows = json.load(f)
        entries = [LaborMatrixEntry.model_validate(row) for row in rows]
        logger.info("Loaded %d labor matrix entries from %s", len(entries), self.labor_matrix_path.name)
        return entries


_ENV_NAMES = {
    "settlement_tolerance": "SETTLEMENT_TOLERANCE",
    "quantity_precision":   "QUANTITY_PRECISION",
    "discrepancy_epsilon":  "DISCREPANCY_EPSILON",
    "cost_per_minute":      "COST_PER_MINUTE",
    "minutes_per_gram":     "MINUTES_PER_GRAM",
    "cache_ttl_seconds":    "CACHE_TTL_SECONDS",
}


def _env_overrides(key: str) -> bool:
    env_name = _ENV_NAMES.get(key)
    return bool(env_name and env_name in os.environ)
