"""Reconciliation engine package."""

from .reconcile import ReconciliationEngine
from .report import render
from .safety import CeilingExceeded, check_ceiling

__all__ = [
    "ReconciliationEngine",
    "CeilingExceeded",
    "check_ceiling",
    "render",
]
