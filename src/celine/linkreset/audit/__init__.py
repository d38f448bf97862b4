"""Audit logging package."""

from .logger import AuditLogger

__all__ = [
    "AuditLogger",
]
