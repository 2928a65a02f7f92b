"""
Pytest configuration and shared fixtures for the settlement engine test suite.
"""
import json
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="engine_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a configuration isolated from the real config/ directory."""
    import config as config_module

    for name in ("SETTLEMENT_TOLERANCE", "QUANTITY_PRECISION", "DISCREPANCY_EPSILON",
                 "COST_PER_MINUTE", "MINUTES_PER_GRAM", "CACHE_TTL_SECONDS", "LABOR_MATRIX_PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "CONFIG_DIR", temp_dir / "config")

    cfg = config_module.Config()
    cfg.labor_matrix_path = temp_dir / "config" / "labor_matrix.json"
    return cfg


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_invoice() -> dict:
    """A partially paid invoice as stored by the record store (camelCase)."""
    return {
        "id": "inv-001",
        "number": "FV/2024/06/001",
        "total": 1000.0,
        "totalPaid": 400.0,
        "proformAllocation": [{"proformaId": "pf-001", "amount": 300.0}],
        "settledAdvancePayments": 0,
        "requiredAdvancePaymentPercentage": 0,
        "dueDate": "2024-06-01",
        "isProforma": False,
        "currency": "EUR",
    }


@pytest.fixture
def sample_proforma() -> dict:
    return {
        "id": "pf-001",
        "number": "FPF/2024/05/001",
        "total": 500.0,
        "totalPaid": 500.0,
        "isProforma": True,
        "usedAsAdvancePayment": 300.0,
    }


@pytest.fixture
def sample_items() -> list[dict]:
    """Stocktaking lines: a short batch, an over-counted batch, a non-lot item, a pending one."""
    return [
        {
            "id": "st-1", "name": "Whey Protein 80", "unit": "kg",
            "batchId": "batch-A", "batchNumber": "LOT-A",
            "systemQuantity": 50, "countedQuantity": 30, "unitPrice": 12.5,
        },
        {
            "id": "st-2", "name": "Creatine", "unit": "kg",
            "batchId": "batch-B", "lotNumber": "LOT-B",
            "systemQuantity": 20, "countedQuantity": 25, "unitPrice": 8,
        },
        {
            "id": "st-3", "name": "Labels", "unit": "szt.",
            "batchId": None,
            "systemQuantity": 1000, "countedQuantity": 1000, "unitPrice": 0.02,
        },
        {
            "id": "st-4", "name": "Cocoa", "unit": "kg",
            "batchId": "batch-C",
            "systemQuantity": 10, "countedQuantity": None, "unitPrice": 5,
        },
    ]


@pytest.fixture
def sample_reservations() -> list[dict]:
    return [
        {"id": "res-1", "batchId": "batch-A", "quantity": 30, "taskNumber": "MO00012"},
        {"id": "res-2", "batchId": "batch-A", "quantity": 20, "moNumber": "CO-0042"},
        {"id": "res-3", "batchId": "batch-B", "quantity": 10, "displayName": "MO00013"},
        {"id": "res-4", "batchId": "batch-C", "quantity": 50, "taskNumber": "MO00014"},
    ]


@pytest.fixture
def sample_quotation() -> dict:
    return {
        "name": "Protein 300 g vanilla",
        "components": [
            {"name": "Whey Protein 80", "quantity": 0.25, "unit": "kg", "unitPrice": 12.0},
            {"name": "Vanilla flavour", "quantity": 20, "unit": "g", "unitPrice": 0.05},
            {"name": "Sucralose", "quantity": 150, "unit": "mg", "unitPrice": 0.001},
        ],
        "packaging": {"name": "Tub 300 g", "quantity": 1, "unitPrice": 0.35},
        "flavored": True,
    }


@pytest.fixture
def write_json(temp_dir: Path):
    """Write *payload* to a JSON file under temp_dir and return its path."""
    def _write(name: str, payload) -> Path:
        path = temp_dir / name
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path
    return _write
