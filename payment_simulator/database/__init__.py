"""
Storage for simulated transactions (in-memory only).
"""

from .transactions import TransactionStore

__all__ = ["TransactionStore"]
