"""
Mock provider clients.

These modules simulate the provider side of M-Pesa STK push and bank transfer
payments without calling any external API:
- identifiers: provider-style ids, receipts and bank references
- scheduler: delayed background completion of transactions
- simulator: the SimulationEngine facade

Webhook notifications are the only outbound traffic; they go through
clients/real_http/webhooks.py.
"""

from .scheduler import CompletionScheduler
from .simulator import SimulationEngine

__all__ = ["CompletionScheduler", "SimulationEngine"]
