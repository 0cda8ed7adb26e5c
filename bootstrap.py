"""
Bootstrap script to ensure the config volume holds editable notification templates.
Copies factory defaults from notifier/templates to config/templates if files are missing,
and writes a starter notifier_settings.json.
"""
import json
import os
import shutil
from pathlib import Path

# Project structure
PROJECT_ROOT = Path(__file__).parent
DEFAULTS_DIR = PROJECT_ROOT / "notifier" / "templates"

_STARTER_SETTINGS = {
    "_comment": "Values here override built-in defaults. Environment variables still win for secrets.",
    "locale": "en",
    "timezone": "Asia/Hong_Kong",
    "notify_customer_on_address_change": False,
    "notify_operator_on_deletion": True,
    "dedupe_registration": True,
}


def ensure_config_files(config_dir: Path | None = None) -> list[Path]:
    """Restore missing templates and settings.  Returns the files that were written."""
    config_dir = Path(config_dir or os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
    templates_dir = config_dir / "templates"
    templates_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    # 1. Starter settings file
    settings = config_dir / "notifier_settings.json"
    if not settings.exists():
        print(f"[Bootstrap] Writing starter settings: {settings.name}")
        settings.write_text(json.dumps(_STARTER_SETTINGS, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        written.append(settings)
    else:
        # Repair corrupted settings
        try:
            if settings.stat().st_size == 0:
                raise ValueError("Empty file")
            with open(settings, "r", encoding="utf-8") as f:
                json.load(f)
        except (json.JSONDecodeError, ValueError):
            print("[Bootstrap] Repairing invalid notifier_settings.json")
            settings.write_text(json.dumps(_STARTER_SETTINGS, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
            written.append(settings)

    if not DEFAULTS_DIR.exists():
        print(f"[Bootstrap] Warning: Defaults directory not found at {DEFAULTS_DIR}")
        return written

    # 2. Jinja2 templates, one folder per locale
    for src_template in sorted(DEFAULTS_DIR.glob("*/*.j2")):
        dst_template = templates_dir / src_template.parent.name / src_template.name
        if not dst_template.exists():
            print(f"[Bootstrap] Restoring missing template: {src_template.parent.name}/{src_template.name}")
            dst_template.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src_template, dst_template)
            written.append(dst_template)

    return written


if __name__ == "__main__":
    ensure_config_files()
