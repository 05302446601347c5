"""
Router initialization module.

Exports all API routers for the cmdsentry HTTP surface.
"""
from cmdsentry.server.routers import commands, results, snapshots, system

__all__ = [
    "commands",
    "results",
    "snapshots",
    "system",
]
