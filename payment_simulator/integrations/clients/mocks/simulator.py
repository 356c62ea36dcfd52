"""
M-Pesa / bank transfer provider: SIMULATOR.

⚠️  No money moves. Transactions live in memory and are resolved either by a
    delayed background completion or by an explicit callback request, with a
    configurable success rate and an optional forced outcome per request.

Lifecycle:
    initiate → pending (M-Pesa) / processing (bank) → completed | failed

If the caller supplied a callback_url, the resolution payload is POSTed to it
and the delivery outcome is recorded on the transaction.
"""

import logging
import random
from typing import Any, Dict, Optional, Tuple

from payment_simulator.database.transactions import TransactionStore
from payment_simulator.error_handler import (
    ErrorHandler,
    NotFoundError,
    SchedulingError,
    SimulatorError,
    AlreadyResolvedError,
    ValidationError,
)
from payment_simulator.integrations.clients.mocks import identifiers
from payment_simulator.integrations.clients.mocks.scheduler import CompletionScheduler
from payment_simulator.integrations.clients.real_http.webhooks import WebhookDispatcher
from payment_simulator.integrations.contracts.interfaces import (
    PaymentMethod,
    PaymentStatus,
    Transaction,
    utc_now_iso,
)
from payment_simulator.integrations.contracts.payments import (
    BANK_FAILURE_REASON,
    BANK_TRANSFER_REQUIRED_FIELDS,
    MPESA_CANCELLED_CODE,
    MPESA_CANCELLED_DESC,
    MPESA_REQUIRED_FIELDS,
    MPESA_SUCCESS_CODE,
    MPESA_SUCCESS_DESC,
    build_resolution_payload,
    is_terminal_status,
    validate_initiation,
)
from payment_simulator.utils.config_loader import SimulatorConfig

logger = logging.getLogger(__name__)

MPESA_PREFIX = "MPX"
BANK_PREFIX = "BNK"


def _no_event_loop() -> SchedulingError:
    return SchedulingError("auto_complete requires a running event loop; resolve manually instead")


class SimulationEngine:
    """
    Simulated payment provider.

    Parameters
    ----------
    config : SimulatorConfig
        Success rate and per-method completion delays. Read-only after construction.
    store : TransactionStore
        Shared transaction records.
    dispatcher : WebhookDispatcher
        Outbound webhook client.
    scheduler : CompletionScheduler
        Runs delayed completions in the background.
    rng : random.Random
        Source for success draws and provider tokens. Pass a seeded instance
        for reproducible outcomes.
    """

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        store: Optional[TransactionStore] = None,
        dispatcher: Optional[WebhookDispatcher] = None,
        scheduler: Optional[CompletionScheduler] = None,
        rng: Optional[random.Random] = None,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.config = config or SimulatorConfig()
        self.store = store or TransactionStore()
        self.dispatcher = dispatcher or WebhookDispatcher(timeout_seconds=self.config.webhook_timeout_seconds)
        self.scheduler = scheduler or CompletionScheduler()
        self._rng = rng or random.Random()
        self._errors = error_handler or ErrorHandler()

        logger.info("[SIMULATOR] Engine initialised (success_rate=%.0f%%)", self.config.success_rate * 100)

    @property
    def success_rate(self) -> float:
        return self.config.success_rate

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _should_succeed(self, force_success: Optional[bool]) -> bool:
        if force_success is not None:
            return bool(force_success)
        return self._rng.random() < self.config.success_rate

    def _maybe_schedule(self, transaction: Transaction, delay: float, auto_complete: bool, force_success: Optional[bool]) -> None:
        if auto_complete:
            self.scheduler.schedule(transaction.transaction_id, delay, self.complete, force_success)

    def _apply_outcome(self, transaction: Transaction, succeeded: bool) -> None:
        transaction.completed_at = utc_now_iso()
        if transaction.is_mpesa:
            if succeeded:
                transaction.status = PaymentStatus.COMPLETED
                transaction.mpesa_receipt = identifiers.new_receipt(self._rng)
                transaction.result_code = MPESA_SUCCESS_CODE
                transaction.result_description = MPESA_SUCCESS_DESC
            else:
                transaction.status = PaymentStatus.FAILED
                transaction.result_code = MPESA_CANCELLED_CODE
                transaction.result_description = MPESA_CANCELLED_DESC
        elif succeeded:
            transaction.status = PaymentStatus.COMPLETED
            transaction.bank_reference = identifiers.new_bank_reference(self._rng)
        else:
            transaction.status = PaymentStatus.FAILED
            transaction.failure_reason = BANK_FAILURE_REASON

    # ------------------------------------------------------------------
    # Initiation
    # ------------------------------------------------------------------

    def initiate_mpesa_payment(
        self,
        phone_number: Optional[str] = None,
        amount: Optional[float] = None,
        account_reference: Optional[str] = "TEST",
        description: Optional[str] = "Payment",
        callback_url: Optional[str] = None,
        auto_complete: bool = False,
        force_success: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Start an STK push. The transaction stays pending until a callback
        resolves it; with ``auto_complete`` that happens after the M-Pesa delay,
        which needs a running event loop.
        """
        errors = validate_initiation({"phone_number": phone_number, "amount": amount}, MPESA_REQUIRED_FIELDS)
        if errors:
            return self._errors.handle_exception(ValidationError("; ".join(errors)), {"method": PaymentMethod.MPESA.value})
        if auto_complete and not self.scheduler.can_schedule():
            return self._errors.handle_exception(_no_event_loop(), {"method": PaymentMethod.MPESA.value})

        transaction = self.store.insert(
            Transaction(
                transaction_id=identifiers.new_transaction_id(MPESA_PREFIX),
                checkout_request_id=identifiers.new_checkout_id(self._rng),
                method=PaymentMethod.MPESA,
                phone_number=str(phone_number),
                amount=amount,
                account_reference=account_reference or "TEST",
                description=description or "Payment",
                status=PaymentStatus.PENDING,
                callback_url=callback_url or None,
            )
        )
        logger.info("[MPESA] STK push initiated id=%s phone=%s amount=%s",
                    transaction.transaction_id, transaction.phone_number, transaction.amount)

        self._maybe_schedule(transaction, self.config.mpesa_delay_seconds, auto_complete, force_success)

        return {
            "success": True,
            "message": "STK Push initiated successfully",
            "transaction_id": transaction.transaction_id,
            "checkout_request_id": transaction.checkout_request_id,
            "status": transaction.status.value,
        }

    def initiate_bank_transfer(
        self,
        account_number: Optional[str] = None,
        bank_code: Optional[str] = None,
        amount: Optional[float] = None,
        reference: Optional[str] = "TEST",
        narration: Optional[str] = "Payment",
        callback_url: Optional[str] = None,
        auto_complete: bool = False,
        force_success: Optional[bool] = None,
    ) -> Dict[str, Any]:
        errors = validate_initiation(
            {"account_number": account_number, "bank_code": bank_code, "amount": amount},
            BANK_TRANSFER_REQUIRED_FIELDS,
        )
        if errors:
            return self._errors.handle_exception(
                ValidationError("; ".join(errors)), {"method": PaymentMethod.BANK_TRANSFER.value}
            )
        if auto_complete and not self.scheduler.can_schedule():
            return self._errors.handle_exception(_no_event_loop(), {"method": PaymentMethod.BANK_TRANSFER.value})

        transaction = self.store.insert(
            Transaction(
                transaction_id=identifiers.new_transaction_id(BANK_PREFIX),
                method=PaymentMethod.BANK_TRANSFER,
                account_number=str(account_number),
                bank_code=str(bank_code),
                amount=amount,
                reference=reference or "TEST",
                narration=narration or "Payment",
                status=PaymentStatus.PROCESSING,
                callback_url=callback_url or None,
            )
        )
        logger.info("[BANK] Transfer initiated id=%s account=%s bank=%s amount=%s",
                    transaction.transaction_id, transaction.account_number,
                    transaction.bank_code, transaction.amount)

        self._maybe_schedule(transaction, self.config.bank_delay_seconds, auto_complete, force_success)

        return {
            "success": True,
            "message": "Bank transfer initiated successfully",
            "transaction_id": transaction.transaction_id,
            "status": transaction.status.value,
        }

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(
        self,
        transaction_id: str,
        force_success: Optional[bool] = None,
        expected_method: Optional[PaymentMethod] = None,
    ) -> Transaction:
        """
        Move a pending/processing transaction to completed or failed.

        Raises:
            NotFoundError: unknown id (or the store was reset)
            AlreadyResolvedError: the transaction is already terminal
            ValidationError: ``expected_method`` doesn't match the transaction
        """
        def _resolve(transaction: Transaction) -> None:
            if expected_method is not None and transaction.method != expected_method:
                raise ValidationError(
                    f"Transaction {transaction_id} is not a {expected_method.value} transaction",
                    transaction_id=transaction_id,
                )
            if is_terminal_status(transaction.status):
                raise AlreadyResolvedError(transaction_id, transaction.status.value)
            self._apply_outcome(transaction, self._should_succeed(force_success))

        transaction = self.store.update(transaction_id, _resolve)
        logger.info("[%s] %s → %s", "MPESA" if transaction.is_mpesa else "BANK",
                    transaction_id, transaction.status.value)
        return transaction

    async def complete(self, transaction_id: str, force_success: Optional[bool] = None) -> Transaction:
        """Resolve and notify the callback URL, if any. Used by the scheduler."""
        transaction, _ = await self._complete(transaction_id, force_success)
        return transaction

    async def _complete(
        self,
        transaction_id: str,
        force_success: Optional[bool] = None,
        expected_method: Optional[PaymentMethod] = None,
    ) -> Tuple[Transaction, Dict[str, Any]]:
        transaction = self.resolve(transaction_id, force_success, expected_method)
        payload = build_resolution_payload(transaction)
        if not transaction.callback_url:
            return transaction, payload

        result = await self.dispatcher.deliver(transaction.callback_url, payload)

        def _record_delivery(record: Transaction) -> None:
            record.webhook_sent = True
            record.webhook_result = result

        try:
            return self.store.update(transaction_id, _record_delivery), payload
        except NotFoundError:
            # Reset while the webhook was in flight; the resolution already happened.
            logger.warning("[WEBHOOK] %s was cleared before its delivery result could be recorded", transaction_id)
            _record_delivery(transaction)
            return transaction, payload

    async def simulate_mpesa_callback(self, transaction_id: str, force_success: Optional[bool] = None) -> Dict[str, Any]:
        """Resolve an STK push now and return the provider callback envelope."""
        try:
            _, payload = await self._complete(transaction_id, force_success, PaymentMethod.MPESA)
        except SimulatorError as e:
            return self._errors.handle_exception(e, {"transaction_id": transaction_id})
        return payload

    async def simulate_bank_transfer_completion(
        self, transaction_id: str, force_success: Optional[bool] = None
    ) -> Dict[str, Any]:
        try:
            _, payload = await self._complete(transaction_id, force_success, PaymentMethod.BANK_TRANSFER)
        except SimulatorError as e:
            return self._errors.handle_exception(e, {"transaction_id": transaction_id})
        return payload

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_transaction_status(self, transaction_id: str) -> Dict[str, Any]:
        try:
            transaction = self.store.get(transaction_id)
        except NotFoundError as e:
            return self._errors.handle_exception(e, {"transaction_id": transaction_id})
        return {"success": True, "transaction": transaction.to_dict()}

    def list_transactions(self, status: Optional[str] = None, method: Optional[str] = None) -> Dict[str, Any]:
        transactions = self.store.list(status=status or None, method=method or None)
        return {
            "success": True,
            "count": len(transactions),
            "transactions": [t.to_dict() for t in transactions],
        }

    def reset_transactions(self) -> Dict[str, Any]:
        dropped = self.store.clear()
        logger.info("[SIMULATOR] Reset dropped %d transactions; %d completions still scheduled",
                    dropped, self.scheduler.pending)
        return {"success": True, "message": "All transactions cleared"}

    def stats(self) -> Dict[str, int]:
        return {
            "transactions": self.store.count(),
            "scheduled_completions": self.scheduler.pending,
        }
