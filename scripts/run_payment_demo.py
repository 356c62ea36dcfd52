#!/usr/bin/env python3
"""
Walk through the simulator's payment scenarios against a running API.

Start the API first (in another terminal):
  uvicorn payment_simulator.api.main:app --host 127.0.0.1 --port 3000

Then run this script:
  python scripts/run_payment_demo.py
  python scripts/run_payment_demo.py --scenario bank --base-url http://127.0.0.1:3000

With --callback-url the simulator POSTs each outcome there; the API's own
/webhooks routes work as a receiver.
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from typing import Any, Dict, Optional

import requests


class PaymentClient:
    def __init__(self, base_url: str, timeout: int = 30) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _post(self, path: str, data: Dict[str, Any]) -> Dict[str, Any]:
        r = requests.post(f"{self.base_url}{path}", json=data, timeout=self.timeout)
        return r.json()

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        r = requests.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        return r.json()

    def mpesa_payment(self, phone_number: str, amount: float, reference: str = "TEST", **extra: Any) -> Dict[str, Any]:
        payload = {
            "phone_number": phone_number,
            "amount": amount,
            "account_reference": reference,
            "description": f"Payment for {reference}",
            **extra,
        }
        return self._post("/api/payments/mpesa/stk-push", payload)

    def bank_transfer(self, account_number: str, bank_code: str, amount: float, reference: str = "TEST", **extra: Any) -> Dict[str, Any]:
        payload = {
            "account_number": account_number,
            "bank_code": bank_code,
            "amount": amount,
            "reference": reference,
            "narration": f"Transfer for {reference}",
            **extra,
        }
        return self._post("/api/payments/bank-transfer", payload)

    def get_status(self, transaction_id: str) -> Dict[str, Any]:
        return self._get(f"/api/payments/{transaction_id}")

    def list_payments(self, status: Optional[str] = None, method: Optional[str] = None) -> Dict[str, Any]:
        params = {k: v for k, v in {"status": status, "method": method}.items() if v}
        return self._get("/api/payments", params=params)

    def reset(self) -> Dict[str, Any]:
        return self._post("/api/payments/reset", {})


def print_stage(title: str, data: Any = None) -> None:
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)
    if data is not None:
        print(json.dumps(data, indent=2, default=str))


def wait_for_terminal(client: PaymentClient, transaction_id: str, seconds: int) -> Dict[str, Any]:
    txn: Dict[str, Any] = {}
    for i in range(seconds):
        time.sleep(1)
        status = client.get_status(transaction_id)
        txn = status.get("transaction") or {}
        print(f"   {'.' * (i + 1)} status: {txn.get('status')}")
        if txn.get("status") in {"completed", "failed"}:
            break
    return txn


def scenario_successful_mpesa(client: PaymentClient, extra: Dict[str, Any]) -> None:
    print_stage("SCENARIO: Successful M-Pesa payment")
    response = client.mpesa_payment("254712345678", 1500.00, "ORDER-12345", force_success=True, **extra)
    print(f"1. STK push sent: {response.get('transaction_id')} ({response.get('status')})")
    print("2. Waiting for customer to enter PIN...")
    txn = wait_for_terminal(client, response["transaction_id"], 4)
    print(f"3. Receipt: {txn.get('mpesa_receipt')}  amount: KES {txn.get('amount')}")


def scenario_failed_mpesa(client: PaymentClient, extra: Dict[str, Any]) -> None:
    print_stage("SCENARIO: Failed M-Pesa payment (user cancelled)")
    response = client.mpesa_payment("254798765432", 2000.00, "ORDER-67890", force_success=False, **extra)
    print(f"1. STK push sent: {response.get('transaction_id')}")
    print("2. Customer cancels the request...")
    txn = wait_for_terminal(client, response["transaction_id"], 4)
    print(f"3. Result: {txn.get('result_code')} {txn.get('result_description')}")


def scenario_bank_transfer(client: PaymentClient, extra: Dict[str, Any]) -> None:
    print_stage("SCENARIO: Bank transfer")
    response = client.bank_transfer("1234567890", "01", 50_000.00, "INV-2024-001", force_success=True, **extra)
    print(f"1. Transfer initiated: {response.get('transaction_id')} ({response.get('status')})")
    print("2. Bank processing...")
    txn = wait_for_terminal(client, response["transaction_id"], 5)
    print(f"3. Bank reference: {txn.get('bank_reference')}  amount: KES {txn.get('amount')}")


def scenario_dashboard(client: PaymentClient, extra: Dict[str, Any]) -> None:
    print_stage("SCENARIO: Multiple payments dashboard")
    client.reset()
    for i, phone in enumerate(("254711000001", "254711000002", "254711000003")):
        client.mpesa_payment(phone, 500.00 * (i + 1), f"ORDER-{i + 1}", **extra)
    client.bank_transfer("9876543210", "02", 10_000.00, "PAYROLL-1", **extra)
    print("Waiting for completions...")
    time.sleep(4)
    for status in ("completed", "failed"):
        listing = client.list_payments(status=status)
        print(f"{status}: {listing.get('count')}")
        for txn in listing.get("transactions", []):
            print(f"  - {txn['transaction_id']}: {txn['method']} KES {txn['amount']}")


SCENARIOS = {
    "mpesa": scenario_successful_mpesa,
    "mpesa-failed": scenario_failed_mpesa,
    "bank": scenario_bank_transfer,
    "dashboard": scenario_dashboard,
}


def main() -> int:
    parser = argparse.ArgumentParser(description="Payment simulator demo scenarios")
    parser.add_argument("--base-url", default="http://localhost:3000", help="Simulator API base URL")
    parser.add_argument("--scenario", choices=[*SCENARIOS, "all"], default="all")
    parser.add_argument("--callback-url", default=None, help="Webhook URL passed on every request")
    args = parser.parse_args()

    client = PaymentClient(args.base_url)
    extra: Dict[str, Any] = {"auto_complete": True}
    if args.callback_url:
        extra["callback_url"] = args.callback_url

    try:
        health = client._get("/api/health")
    except requests.RequestException as e:
        print(f"FAIL: {e}")
        print("→ Start the API first: uvicorn payment_simulator.api.main:app --port 3000")
        return 1
    print(f"Simulator: {health.get('status')} at {client.base_url}")

    selected = SCENARIOS.values() if args.scenario == "all" else [SCENARIOS[args.scenario]]
    for scenario in selected:
        scenario(client, extra)
    return 0


if __name__ == "__main__":
    sys.exit(main())
