"""Error types and result mapping for the payment simulator."""
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class SimulatorError(Exception):
    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, *, transaction_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.transaction_id = transaction_id

    def to_result(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message, "error": self.code}


class ValidationError(SimulatorError):
    code = "validation_error"
    status_code = 400


class NotFoundError(SimulatorError):
    code = "not_found"
    status_code = 404

    def __init__(self, transaction_id: str) -> None:
        super().__init__("Transaction not found", transaction_id=transaction_id)


class AlreadyResolvedError(SimulatorError):
    code = "already_resolved"
    status_code = 409

    def __init__(self, transaction_id: str, status: str) -> None:
        super().__init__(f"Transaction already {status}", transaction_id=transaction_id)
        self.status = status

    def to_result(self) -> Dict[str, Any]:
        result = super().to_result()
        result["transaction_id"] = self.transaction_id
        result["status"] = self.status
        return result


class SchedulingError(SimulatorError):
    """auto_complete was requested outside a running event loop."""
    code = "scheduling_unavailable"
    status_code = 503


class DuplicateIdError(SimulatorError):
    code = "duplicate_id"
    status_code = 409

    def __init__(self, transaction_id: str) -> None:
        super().__init__(f"Transaction {transaction_id} already exists", transaction_id=transaction_id)


class DeliveryError(SimulatorError):
    """Webhook transport failure. Captured into a WebhookResult, never raised to callers."""
    code = "delivery_failed"
    status_code = 502


_STATUS_BY_CODE = {
    cls.code: cls.status_code
    for cls in (SimulatorError, ValidationError, NotFoundError, AlreadyResolvedError, SchedulingError,
                DuplicateIdError, DeliveryError)
}


class ErrorHandler:
    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        if isinstance(exc, SimulatorError):
            logger.info("Simulator request rejected: %s context=%s", exc.message, context or {})
            return exc.to_result()

        logger.error("Unhandled exception in payment simulator: %s", exc, exc_info=True)
        return {
            "success": False,
            "message": "Internal server error",
            "error": SimulatorError.code,
            "metadata": {"error": str(exc), "context": context or {}},
        }

    @staticmethod
    def status_code_for(result: Dict[str, Any]) -> int:
        """HTTP status for an engine result; 200 unless it carries an error code."""
        code = result.get("error")
        if not code:
            return 200
        return _STATUS_BY_CODE.get(code, 500)
