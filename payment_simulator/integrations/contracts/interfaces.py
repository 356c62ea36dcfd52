from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PaymentMethod(str, Enum):
    MPESA = "mpesa"
    BANK_TRANSFER = "bank_transfer"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"              # defined for parity with providers; never produced


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Shared data models
# ---------------------------------------------------------------------------

@dataclass
class WebhookResult:
    """Outcome of a single webhook delivery attempt."""
    delivered: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    response_body: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Transaction:
    transaction_id: str
    method: PaymentMethod
    amount: float
    status: PaymentStatus
    callback_url: Optional[str] = None
    initiated_at: str = field(default_factory=utc_now_iso)
    completed_at: Optional[str] = None

    # M-Pesa
    phone_number: Optional[str] = None
    account_reference: Optional[str] = None
    description: Optional[str] = None
    checkout_request_id: Optional[str] = None
    result_code: Optional[int] = None
    result_description: Optional[str] = None
    mpesa_receipt: Optional[str] = None

    # Bank transfer
    account_number: Optional[str] = None
    bank_code: Optional[str] = None
    reference: Optional[str] = None
    narration: Optional[str] = None
    bank_reference: Optional[str] = None
    failure_reason: Optional[str] = None

    webhook_sent: bool = False
    webhook_result: Optional[WebhookResult] = None

    @property
    def is_mpesa(self) -> bool:
        return self.method == PaymentMethod.MPESA

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation; only the fields relevant to the payment method."""
        data: Dict[str, Any] = {
            "transaction_id": self.transaction_id,
            "method": self.method.value,
            "amount": self.amount,
            "status": self.status.value,
            "initiated_at": self.initiated_at,
            "completed_at": self.completed_at,
            "callback_url": self.callback_url,
            "webhook_sent": self.webhook_sent,
            "webhook_result": self.webhook_result.to_dict() if self.webhook_result else None,
        }
        if self.is_mpesa:
            data.update({
                "checkout_request_id": self.checkout_request_id,
                "phone_number": self.phone_number,
                "account_reference": self.account_reference,
                "description": self.description,
                "mpesa_receipt": self.mpesa_receipt,
                "result_code": self.result_code,
                "result_description": self.result_description,
            })
        else:
            data.update({
                "account_number": self.account_number,
                "bank_code": self.bank_code,
                "reference": self.reference,
                "narration": self.narration,
                "bank_reference": self.bank_reference,
                "failure_reason": self.failure_reason,
            })
        return data
