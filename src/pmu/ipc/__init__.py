"""IPC (Inter-Process Communication) between pmu clients and the daemon."""

from .client import send_message

__all__ = ["send_message"]
