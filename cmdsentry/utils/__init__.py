"""Module __init__: shared helpers for cmdsentry."""
#
# KEY MODULES:
# - **observer.py**: Signal/Subscription pub-sub used by hosts for change events
# - **async_helpers.py**: Task helpers (logged background tasks, timer races)
#
from .async_helpers import create_safe_task, wait_first
from .observer import Signal, Subscription

__all__ = ["Signal", "Subscription", "create_safe_task", "wait_first"]
