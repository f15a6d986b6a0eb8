"""
Configuration utilities for Courier Assist.

Provides centralized access to configuration from environment variables.
Everything here is replaceable at runtime on the components themselves;
these getters only supply the startup values.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from courier_assist.core.safety import SafetyThresholds

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()


def _get_number(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


def get_data_folder() -> Path:
    """
    Get the data folder path from environment or default.

    Returns:
        Path object pointing to the data folder
    """
    data_folder = os.getenv("DATA_FOLDER", "data")
    path = Path(data_folder)

    # Create folder if it doesn't exist
    path.mkdir(parents=True, exist_ok=True)

    return path


def get_audit_db_path() -> Path:
    """
    Get the audit database path.

    Returns:
        Path object pointing to audit.db
    """
    return get_data_folder() / "audit.db"


def get_context_expiration_minutes() -> int:
    """Minutes of inactivity after which a preserved conversation expires."""
    return max(1, int(_get_number("CONTEXT_EXPIRATION_MINUTES", 60)))


def get_safety_thresholds() -> SafetyThresholds:
    """
    Safety detection thresholds.

    Returns:
        SafetyThresholds built from SAFETY_* variables
    """
    return SafetyThresholds(
        speed_high=_get_number("SAFETY_SPEED_THRESHOLD", 80.0),
        acceleration=_get_number("SAFETY_ACCELERATION_THRESHOLD", 5.0),
        turn_variance=_get_number("SAFETY_TURN_VARIANCE_THRESHOLD", 2.0),
    )


def get_blocked_keywords() -> Optional[List[str]]:
    """
    Blocked keywords from DOMAIN_BLOCKED_KEYWORDS (comma separated).

    Returns:
        Keyword list, or None to use the built-in list
    """
    raw = os.getenv("DOMAIN_BLOCKED_KEYWORDS")
    if not raw:
        return None
    keywords = [k.strip() for k in raw.split(",") if k.strip()]
    return keywords or None


def get_rejection_message() -> Optional[str]:
    return os.getenv("DOMAIN_REJECTION_MESSAGE") or None
