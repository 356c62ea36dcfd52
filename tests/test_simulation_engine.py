import logging

import httpx
import pytest

from payment_simulator.error_handler import AlreadyResolvedError, NotFoundError, ValidationError
from payment_simulator.integrations.contracts.interfaces import PaymentMethod, PaymentStatus


def _mpesa(engine, **kwargs):
    params = {"phone_number": "254712345678", "amount": 1000}
    params.update(kwargs)
    return engine.initiate_mpesa_payment(**params)


def _bank(engine, **kwargs):
    params = {"account_number": "1234567890", "bank_code": "01", "amount": 5000}
    params.update(kwargs)
    return engine.initiate_bank_transfer(**params)


def test_initiation_returns_identifiers_and_initial_state(engine):
    mpesa = _mpesa(engine, account_reference="ORD-12345")
    bank = _bank(engine)

    assert mpesa["success"] is True
    assert mpesa["message"] == "STK Push initiated successfully"
    assert mpesa["transaction_id"].startswith("MPX")
    assert mpesa["checkout_request_id"].startswith("ws_CO_")
    assert mpesa["status"] == "pending"

    assert bank["success"] is True
    assert bank["transaction_id"].startswith("BNK")
    assert bank["status"] == "processing"
    assert "checkout_request_id" not in bank

    stored = engine.get_transaction_status(mpesa["transaction_id"])["transaction"]
    assert stored["account_reference"] == "ORD-12345"
    assert stored["description"] == "Payment"
    assert stored["webhook_sent"] is False
    assert stored["webhook_result"] is None


def test_defaults_apply_when_optional_fields_are_none(engine):
    tid = _bank(engine, reference=None, narration=None)["transaction_id"]
    stored = engine.get_transaction_status(tid)["transaction"]
    assert stored["reference"] == "TEST"
    assert stored["narration"] == "Payment"


@pytest.mark.parametrize(
    "kwargs, fragment",
    [
        ({"phone_number": None}, "phone_number"),
        ({"amount": None}, "amount"),
        ({"amount": "lots"}, "numeric"),
        ({"amount": 0}, "greater than zero"),
        ({"amount": float("inf")}, "finite"),
        ({"amount": float("nan")}, "finite"),
    ],
)
def test_invalid_mpesa_initiation_is_a_structured_failure(engine, kwargs, fragment):
    result = _mpesa(engine, **kwargs)

    assert result["success"] is False
    assert result["error"] == "validation_error"
    assert fragment in result["message"]
    assert engine.list_transactions()["count"] == 0


def test_missing_bank_fields_are_reported_together(engine):
    result = engine.initiate_bank_transfer(amount=10)
    assert result["success"] is False
    assert "account_number" in result["message"]
    assert "bank_code" in result["message"]


def test_successful_resolution_sets_receipt_and_result_code(make_engine):
    engine = make_engine(success_rate=1.0)
    tid = _mpesa(engine)["transaction_id"]

    txn = engine.resolve(tid)

    assert txn.status == PaymentStatus.COMPLETED
    assert txn.result_code == 0
    assert txn.result_description == "The service request is processed successfully"
    assert txn.mpesa_receipt
    assert txn.completed_at


def test_failed_resolutions_carry_no_proof_of_completion(make_engine):
    engine = make_engine(success_rate=0.0)
    mpesa = engine.resolve(_mpesa(engine)["transaction_id"])
    bank = engine.resolve(_bank(engine)["transaction_id"])

    assert mpesa.status == PaymentStatus.FAILED
    assert mpesa.result_code == 1032
    assert mpesa.result_description == "Request cancelled by user"
    assert mpesa.mpesa_receipt is None

    assert bank.status == PaymentStatus.FAILED
    assert bank.failure_reason == "Insufficient funds"
    assert bank.bank_reference is None


def test_second_resolution_raises_and_leaves_record_unchanged(engine):
    tid = _bank(engine)["transaction_id"]
    engine.resolve(tid, force_success=True)
    before = engine.store.get(tid)

    with pytest.raises(AlreadyResolvedError):
        engine.resolve(tid, force_success=False)

    assert engine.store.get(tid) == before


def test_resolving_unknown_id_raises_not_found(engine):
    with pytest.raises(NotFoundError):
        engine.resolve("MPXDOESNOTEXIST")


def test_resolving_through_the_wrong_method_is_rejected(engine):
    tid = _bank(engine)["transaction_id"]
    with pytest.raises(ValidationError):
        engine.resolve(tid, expected_method=PaymentMethod.MPESA)
    assert engine.store.get(tid).status == PaymentStatus.PROCESSING


@pytest.mark.parametrize("rate", [0.0, 0.5, 1.0])
def test_forced_outcome_overrides_success_rate(make_engine, rate):
    engine = make_engine(success_rate=rate)
    for _ in range(100):
        assert engine.resolve(_mpesa(engine)["transaction_id"], force_success=True).status == PaymentStatus.COMPLETED
        assert engine.resolve(_bank(engine)["transaction_id"], force_success=False).status == PaymentStatus.FAILED


@pytest.mark.parametrize("rate, expected", [(1.0, PaymentStatus.COMPLETED), (0.0, PaymentStatus.FAILED)])
def test_extreme_success_rates_are_deterministic(make_engine, rate, expected):
    engine = make_engine(success_rate=rate)
    outcomes = {engine.resolve(_bank(engine)["transaction_id"]).status for _ in range(100)}
    assert outcomes == {expected}


def test_same_seed_gives_same_outcome_sequence(make_engine):
    def _run(seed):
        engine = make_engine(success_rate=0.5, seed=seed)
        return [engine.resolve(_mpesa(engine)["transaction_id"]).status for _ in range(30)]

    assert _run(99) == _run(99)


def test_receipt_present_iff_completed(make_engine):
    engine = make_engine(success_rate=0.5)
    for _ in range(60):
        _mpesa(engine)
        _bank(engine)
    for txn in engine.store.list():
        engine.resolve(txn.transaction_id)

    for txn in engine.store.list():
        proof = txn.mpesa_receipt if txn.is_mpesa else txn.bank_reference
        assert bool(proof) == (txn.status == PaymentStatus.COMPLETED)


@pytest.mark.asyncio
async def test_manual_mpesa_callback_returns_stk_envelope(engine):
    tid = _mpesa(engine)["transaction_id"]
    checkout_id = engine.store.get(tid).checkout_request_id

    envelope = await engine.simulate_mpesa_callback(tid, force_success=True)

    callback = envelope["Body"]["stkCallback"]
    assert callback["MerchantRequestID"] == checkout_id
    assert callback["CheckoutRequestID"] == checkout_id
    assert callback["ResultCode"] == 0
    items = {item["Name"]: item["Value"] for item in callback["CallbackMetadata"]["Item"]}
    assert items["Amount"] == 1000
    assert items["MpesaReceiptNumber"] == engine.store.get(tid).mpesa_receipt
    assert items["PhoneNumber"] == "254712345678"
    assert len(items["TransactionDate"]) == 14


@pytest.mark.asyncio
async def test_failed_mpesa_callback_has_no_metadata(engine):
    tid = _mpesa(engine)["transaction_id"]

    envelope = await engine.simulate_mpesa_callback(tid, force_success=False)

    callback = envelope["Body"]["stkCallback"]
    assert callback["ResultCode"] == 1032
    assert callback["ResultDesc"] == "Request cancelled by user"
    assert "CallbackMetadata" not in callback


@pytest.mark.asyncio
async def test_manual_bank_completion_results(engine):
    ok_id = _bank(engine, reference="INV-1")["transaction_id"]
    bad_id = _bank(engine, amount=5000)["transaction_id"]

    ok = await engine.simulate_bank_transfer_completion(ok_id, force_success=True)
    bad = await engine.simulate_bank_transfer_completion(bad_id, force_success=False)

    assert ok["success"] is True
    assert ok["status"] == "completed"
    assert ok["bank_reference"].startswith("FT")
    assert ok["message"] == "Transfer completed successfully"
    assert ok["reference"] == "INV-1"
    assert ok["account_number"] == "1234567890"

    assert bad["success"] is False
    assert bad["status"] == "failed"
    assert "bank_reference" not in bad
    assert bad["message"] == "Transfer failed: Insufficient funds"
    assert bad["amount"] == 5000


@pytest.mark.asyncio
async def test_manual_resolution_failures_are_structured(engine):
    missing = await engine.simulate_mpesa_callback("MPXNOPE")
    assert missing == {"success": False, "message": "Transaction not found", "error": "not_found"}

    tid = _mpesa(engine)["transaction_id"]
    await engine.simulate_mpesa_callback(tid, force_success=True)
    repeat = await engine.simulate_mpesa_callback(tid, force_success=False)
    assert repeat["error"] == "already_resolved"
    assert repeat["status"] == "completed"

    wrong = await engine.simulate_bank_transfer_completion(tid)
    assert wrong["error"] == "validation_error"


@pytest.mark.asyncio
async def test_callback_url_receives_the_same_payload(engine, receiver):
    tid = _bank(engine, callback_url="http://receiver.test/webhooks/bank")["transaction_id"]

    result = await engine.simulate_bank_transfer_completion(tid, force_success=True)

    assert receiver.requests == [{"url": "http://receiver.test/webhooks/bank", "json": result}]
    stored = engine.store.get(tid)
    assert stored.webhook_sent is True
    assert stored.webhook_result.delivered is True
    assert stored.webhook_result.status_code == 200


@pytest.mark.asyncio
async def test_webhook_flags_follow_callback_url_and_resolution(engine, receiver):
    with_url = _mpesa(engine, callback_url="http://receiver.test/webhooks/mpesa")["transaction_id"]
    without_url = _mpesa(engine)["transaction_id"]
    untouched = _mpesa(engine, callback_url="http://receiver.test/webhooks/mpesa")["transaction_id"]

    await engine.complete(with_url)
    await engine.complete(without_url)

    assert engine.store.get(with_url).webhook_sent is True
    assert engine.store.get(with_url).webhook_result is not None
    assert engine.store.get(without_url).webhook_sent is False
    assert engine.store.get(without_url).webhook_result is None
    assert engine.store.get(untouched).webhook_sent is False
    assert len(receiver.requests) == 1


@pytest.mark.asyncio
async def test_unreachable_callback_does_not_change_outcome(unreachable_engine):
    engine = unreachable_engine
    tid = _mpesa(engine, callback_url="http://10.255.255.1:4567/webhooks/mpesa")["transaction_id"]

    txn = await engine.complete(tid, force_success=True)

    assert txn.status == PaymentStatus.COMPLETED
    assert txn.webhook_sent is True
    assert txn.webhook_result.delivered is False
    assert "Connection refused" in txn.webhook_result.error


def test_list_and_reset(make_engine):
    engine = make_engine(success_rate=0.5)
    ids = [_mpesa(engine)["transaction_id"] for _ in range(10)] + [_bank(engine)["transaction_id"] for _ in range(10)]
    for tid in ids[::2]:
        engine.resolve(tid)

    completed = engine.list_transactions(status="completed")
    expected = [t.transaction_id for t in engine.store.list() if t.status == PaymentStatus.COMPLETED]
    assert [t["transaction_id"] for t in completed["transactions"]] == expected
    assert completed["count"] == len(expected)

    banks = engine.list_transactions(method="bank_transfer")
    assert banks["count"] == 10
    assert all(t["method"] == "bank_transfer" for t in banks["transactions"])

    assert engine.reset_transactions() == {"success": True, "message": "All transactions cleared"}
    assert engine.list_transactions() == {"success": True, "count": 0, "transactions": []}
    assert engine.get_transaction_status(ids[0])["success"] is False


@pytest.mark.asyncio
async def test_reset_during_webhook_delivery_still_returns_the_callback(make_engine, caplog):
    engines = []

    def _reset_then_ack(request):
        engines[0].reset_transactions()
        return httpx.Response(200, json={"success": True})

    engine = make_engine(handler=_reset_then_ack)
    engines.append(engine)
    tid = _mpesa(engine, callback_url="http://receiver.test/webhooks/mpesa")["transaction_id"]

    with caplog.at_level(logging.WARNING):
        result = await engine.simulate_mpesa_callback(tid, force_success=True)

    assert result["Body"]["stkCallback"]["ResultCode"] == 0
    assert engine.list_transactions()["count"] == 0
    assert "cleared before its delivery result could be recorded" in caplog.text
