"""
In-memory transaction store.

Holds every live transaction for the lifetime of the process. Nothing is
persisted; a restart or ``clear()`` drops everything.

All access goes through a single lock so that a scheduled completion and a
manual callback racing on the same id never interleave their read-modify-write.
Callers only ever receive copies; the live records never leave the store.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Callable, Dict, List, Optional, Union

from payment_simulator.error_handler import DuplicateIdError, NotFoundError
from payment_simulator.integrations.contracts.interfaces import PaymentMethod, PaymentStatus, Transaction

logger = logging.getLogger(__name__)

Mutator = Callable[[Transaction], None]


class TransactionStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        # transaction_id -> record; dicts keep insertion order for list()
        self._transactions: Dict[str, Transaction] = {}

    # --- Single-record operations --------------------------------------------

    def insert(self, record: Transaction) -> Transaction:
        with self._lock:
            if record.transaction_id in self._transactions:
                raise DuplicateIdError(record.transaction_id)
            self._transactions[record.transaction_id] = copy.deepcopy(record)
        logger.debug("Stored transaction %s (%s)", record.transaction_id, record.method.value)
        return copy.deepcopy(record)

    def get(self, transaction_id: str) -> Transaction:
        with self._lock:
            record = self._transactions.get(transaction_id)
            if record is None:
                raise NotFoundError(transaction_id)
            return copy.deepcopy(record)

    def update(self, transaction_id: str, mutator: Mutator) -> Transaction:
        """
        Apply ``mutator`` to the stored record under the store lock.

        The mutator works on a scratch copy which replaces the stored record
        only if it returns cleanly, so an exception leaves the record as it was.
        """
        with self._lock:
            current = self._transactions.get(transaction_id)
            if current is None:
                raise NotFoundError(transaction_id)
            draft = copy.deepcopy(current)
            mutator(draft)
            self._transactions[transaction_id] = draft
            return copy.deepcopy(draft)

    # --- Bulk operations -----------------------------------------------------

    def list(
        self,
        status: Optional[Union[PaymentStatus, str]] = None,
        method: Optional[Union[PaymentMethod, str]] = None,
    ) -> List[Transaction]:
        status_value = getattr(status, "value", status)
        method_value = getattr(method, "value", method)
        with self._lock:
            records = list(self._transactions.values())
            return [
                copy.deepcopy(record)
                for record in records
                if (status_value is None or record.status.value == status_value)
                and (method_value is None or record.method.value == method_value)
            ]

    def clear(self) -> int:
        with self._lock:
            dropped = len(self._transactions)
            self._transactions = {}
        logger.info("Cleared %d transactions", dropped)
        return dropped

    def count(self) -> int:
        with self._lock:
            return len(self._transactions)
