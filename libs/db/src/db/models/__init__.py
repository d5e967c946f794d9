"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the inventory catalog models used by ``inventory_ledger``.
"""

from .inventory import Base, InvCategory, InvItem

__all__ = [
    "Base",
    "InvCategory",
    "InvItem",
]
