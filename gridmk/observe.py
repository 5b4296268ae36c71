"""Tracing hooks for the calculators.

Calculators stay pure: they never log on their own. A caller that wants to
see intermediate values passes an observer, any callable taking an event
name and a payload dict.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

Observer = Callable[[str, Dict[str, Any]], None]


def notify(observer: Optional[Observer], event: str, **payload: Any) -> None:
    """Send ``event`` to ``observer`` if one was given."""
    if observer is not None:
        observer(event, payload)


class LoggingObserver:
    """Forward calculator events to a logger as ``event key=value ...`` lines."""

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.DEBUG):
        self.logger = logger or logging.getLogger("gridmk.trace")
        self.level = level

    def __call__(self, event: str, payload: Dict[str, Any]) -> None:
        if not self.logger.isEnabledFor(self.level):
            return
        fields = " ".join(f"{key}={payload[key]!r}" for key in sorted(payload))
        self.logger.log(self.level, "%s %s", event, fields)


class RecordingObserver:
    """Keep every event in memory, in the order received."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def __call__(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, dict(payload)))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def last(self, event: str) -> Dict[str, Any]:
        for name, payload in reversed(self.events):
            if name == event:
                return payload
        raise KeyError(event)
