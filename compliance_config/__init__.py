"""
compliance_config -- preference loading for the compliance engine.

Responsibility:
    Provides ``get_preferences()``, the one way services obtain process-wide
    preferences at runtime.  Values come from a YAML document; the default
    document ships in ``compliance_config/sets/default.yaml``.

Failure modes:
    - ``FileNotFoundError`` -- the requested preferences file is missing.
    - ``InvalidPreferenceError`` -- unknown keys or out-of-range values.
"""

from __future__ import annotations

from pathlib import Path

from compliance_config.loader import load_preferences, parse_preferences
from compliance_config.schema import CompliancePreferences
from compliance_kernel.logging_config import get_logger

logger = get_logger("config")

_DEFAULT_PREFERENCES_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_preferences(path: Path | None = None) -> CompliancePreferences:
    """Load preferences from ``path`` (or the bundled default set)."""
    source = path or _DEFAULT_PREFERENCES_FILE
    prefs = load_preferences(source)
    logger.info(
        "preferences_loaded",
        extra={
            "source": str(source),
            "lead_time_to_ship_days": prefs.lead_time_to_ship_days,
            "include_pending_orders_in_credit": prefs.include_pending_orders_in_credit,
        },
    )
    return prefs


__all__ = [
    "CompliancePreferences",
    "get_preferences",
    "load_preferences",
    "parse_preferences",
]
