"""
Bootstrap script to ensure essential configuration files exist in the config volume.
Copies factory defaults from defaults/ to the config directory if files are missing.
"""
import json
import logging
import shutil
from pathlib import Path

from config import PROJECT_ROOT, SETTINGS_FILENAME, config_dir

logger = logging.getLogger(__name__)

DEFAULTS_DIR = PROJECT_ROOT / "defaults"


def ensure_config_files(target: Path | None = None, defaults: Path | None = None) -> list[str]:
    """Verify and restore missing config files; returns the names restored."""
    target = Path(target) if target else config_dir()
    defaults = Path(defaults) if defaults else DEFAULTS_DIR
    target.mkdir(parents=True, exist_ok=True)
    restored = []

    if not defaults.exists():
        logger.warning("Defaults directory not found at %s", defaults)
        return restored

    # 1. Settings overlay
    src = defaults / SETTINGS_FILENAME
    dst = target / SETTINGS_FILENAME
    if src.exists():
        if not dst.exists():
            logger.info("Restoring missing config file: %s", SETTINGS_FILENAME)
            shutil.copy2(src, dst)
            restored.append(SETTINGS_FILENAME)
        else:
            # Repair a corrupted settings file
            try:
                if dst.stat().st_size == 0:
                    raise ValueError("Empty file")
                with open(dst, "r", encoding="utf-8") as f:
                    json.load(f)
            except (json.JSONDecodeError, ValueError):
                logger.warning("Repairing invalid %s", SETTINGS_FILENAME)
                shutil.copy2(src, dst)
                restored.append(SETTINGS_FILENAME)

    # 2. Jinja2 templates
    for src_template in sorted(defaults.glob("*.j2")):
        dst_template = target / src_template.name
        if not dst_template.exists():
            logger.info("Restoring missing template: %s", src_template.name)
            shutil.copy2(src_template, dst_template)
            restored.append(src_template.name)

    return restored


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[Bootstrap] %(message)s")
    ensure_config_files()
