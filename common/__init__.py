"""
Shared infrastructure for the real-time cargo pipeline.

- Clocks (system and manual) used for every timestamp and delay
- Settings loaded from the environment
- The ``{{path}}`` template renderer
"""

from common.clock import Clock, ManualClock, SystemClock
from common.config import Settings, get_settings
from common.templating import find_placeholders, render, resolve_path

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "Settings",
    "get_settings",
    "find_placeholders",
    "render",
    "resolve_path",
]
