"""Infrastructure — host probes used by the status message."""

from ghbridge.infrastructure.system_status import (
    SystemStatusCollector,
    build_status_message,
    status_composer,
)

__all__ = ["SystemStatusCollector", "build_status_message", "status_composer"]
