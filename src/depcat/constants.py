"""Constants for depcat."""

from __future__ import annotations

# On-disk layout
DEPCAT_DIRNAME = ".depcat"
STORAGE_FILENAME = "dependencies.jsonl"
LOCK_FILENAME = ".dependencies.lock"

# Default values
DEFAULT_TYPE = "blocks"
DEFAULT_TOP_N = 5
DEFAULT_ON_DUPLICATE = "reject"
ON_DUPLICATE_CHOICES = frozenset({"reject", "overwrite"})

# An item that blocks more than this many others is flagged as critical path
CRITICAL_PATH_THRESHOLD = 2

# Impact risk thresholds: (max affected items, level), checked in order
RISK_THRESHOLDS = (
    (0, "low"),
    (2, "medium"),
    (5, "high"),
)
RISK_LEVEL_MAX = "critical"

# Recommendations kick in above these counts
MANY_AFFECTED_THRESHOLD = 5
MANY_BLOCKERS_THRESHOLD = 3

# Color mappings for CLI display
STATUS_COLORS = {
    "active": "bright_red",
    "resolved": "bright_green",
    "ignored": "bright_black",
}

TYPE_COLORS = {
    "blocks": "bright_red",
    "requires": "bright_yellow",
}

RISK_COLORS = {
    "low": "bright_green",
    "medium": "yellow",
    "high": "bright_red",
    "critical": "bright_magenta",
}

STATUS_SYMBOLS = {
    "active": "●",
    "resolved": "✓",
    "ignored": "◇",
}

# Symbols for history output
EVENT_SYMBOLS: dict[str, str] = {
    "added": "+",
    "removed": "✗",
    "resolved": "✓",
    "ignored": "◇",
    "reactivated": "↺",
}
