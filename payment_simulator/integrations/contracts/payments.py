"""
Payment contracts.

Defines the payload shapes the simulator hands back to callers and POSTs to
webhook receivers:
- the M-Pesa STK push callback envelope
- the bank transfer completion result

The same builders are used for manual resolution responses and for outbound
webhooks, so integrations see identical payloads on both paths.
"""

import math
from datetime import datetime
from numbers import Number
from typing import Any, Dict, List

from .interfaces import PaymentStatus, Transaction

MPESA_SUCCESS_CODE = 0
MPESA_SUCCESS_DESC = "The service request is processed successfully"
MPESA_CANCELLED_CODE = 1032
MPESA_CANCELLED_DESC = "Request cancelled by user"

BANK_FAILURE_REASON = "Insufficient funds"

MPESA_REQUIRED_FIELDS = ("phone_number", "amount")
BANK_TRANSFER_REQUIRED_FIELDS = ("account_number", "bank_code", "amount")


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def build_stk_callback(transaction: Transaction) -> Dict[str, Any]:
    """STK push callback envelope for a resolved M-Pesa transaction."""
    callback: Dict[str, Any] = {
        "MerchantRequestID": transaction.checkout_request_id,
        "CheckoutRequestID": transaction.checkout_request_id,
        "ResultCode": transaction.result_code,
        "ResultDesc": transaction.result_description,
    }
    if transaction.status == PaymentStatus.COMPLETED:
        callback["CallbackMetadata"] = {
            "Item": [
                {"Name": "Amount", "Value": transaction.amount},
                {"Name": "MpesaReceiptNumber", "Value": transaction.mpesa_receipt},
                {"Name": "TransactionDate", "Value": datetime.now().strftime("%Y%m%d%H%M%S")},
                {"Name": "PhoneNumber", "Value": transaction.phone_number},
            ]
        }
    return {"Body": {"stkCallback": callback}}


def build_bank_result(transaction: Transaction) -> Dict[str, Any]:
    """Completion result for a resolved bank transfer."""
    succeeded = transaction.status == PaymentStatus.COMPLETED
    result: Dict[str, Any] = {
        "success": succeeded,
        "transaction_id": transaction.transaction_id,
        "status": transaction.status.value,
    }
    if succeeded:
        result["bank_reference"] = transaction.bank_reference
        result["message"] = "Transfer completed successfully"
    else:
        result["message"] = f"Transfer failed: {transaction.failure_reason}"
    result.update({
        "account_number": transaction.account_number,
        "amount": transaction.amount,
        "reference": transaction.reference,
    })
    return result


def build_resolution_payload(transaction: Transaction) -> Dict[str, Any]:
    if transaction.is_mpesa:
        return build_stk_callback(transaction)
    return build_bank_result(transaction)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def validate_initiation(fields: Dict[str, Any], required: tuple) -> List[str]:
    """
    Return a list of validation errors.
    Empty list means the request is valid.
    """
    errors: List[str] = []

    missing = [name for name in required if fields.get(name) in (None, "")]
    if missing:
        errors.append(f"Missing required fields: {', '.join(missing)}")

    amount = fields.get("amount")
    if amount is not None and "amount" not in missing:
        if isinstance(amount, bool) or not isinstance(amount, Number):
            errors.append("amount must be numeric")
        elif not math.isfinite(amount):
            errors.append("amount must be a finite number")
        elif amount <= 0:
            errors.append("amount must be greater than zero")

    return errors


def is_terminal_status(status: PaymentStatus) -> bool:
    """Return True if the transaction has reached a final, non-changeable state."""
    return status in {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED}
