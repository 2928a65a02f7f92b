"""
Bootstrap script to ensure essential configuration files exist in the config volume.
Copies factory defaults from defaults/ to config/ if files are missing or unreadable.
"""
import json
import os
import shutil
from pathlib import Path

# Project structure
PROJECT_ROOT = Path(__file__).parent
CONFIG_DIR = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
DEFAULTS_DIR = PROJECT_ROOT / "defaults"

CONFIG_FILES = ["engine_settings.json", "labor_matrix.json"]


def ensure_config_files(config_dir: Path = CONFIG_DIR, defaults_dir: Path = DEFAULTS_DIR) -> list[str]:
    """Verify and restore missing config files from defaults folder."""
    config_dir.mkdir(parents=True, exist_ok=True)
    restored: list[str] = []

    if not defaults_dir.exists():
        print(f"[Bootstrap] Warning: Defaults directory not found at {defaults_dir}")
        return restored

    for filename in CONFIG_FILES:
        src = defaults_dir / filename
        dst = config_dir / filename
        if not src.exists():
            continue

        if not dst.exists():
            print(f"[Bootstrap] Restoring missing config file: {filename}")
            shutil.copy2(src, dst)
            restored.append(filename)
            continue

        # Repair empty or corrupted JSON
        try:
            if dst.stat().st_size == 0:
                raise ValueError("Empty file")
            with open(dst, "r", encoding="utf-8") as f:
                json.load(f)
        except (json.JSONDecodeError, ValueError):
            print(f"[Bootstrap] Repairing invalid {filename}")
            shutil.copy2(src, dst)
            restored.append(filename)

    return restored


if __name__ == "__main__":
    ensure_config_files()
