"""
Integrations layer.

This package contains the simulated provider and the code it uses to talk to
the outside world:
- contracts: transaction records, enums and payload shapes
- clients/mocks: the simulation engine (identifiers, scheduler, engine)
- clients/real_http: outbound webhook delivery over HTTP

Key rule:
- The HTTP layer MUST NOT mutate transactions directly.
- Routes call the SimulationEngine facade, which owns the store.
"""

from .contracts.interfaces import PaymentMethod, PaymentStatus, Transaction, WebhookResult

__all__ = ["PaymentMethod", "PaymentStatus", "Transaction", "WebhookResult"]
