from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from payment_simulator.error_handler import ErrorHandler
from payment_simulator.integrations.clients.mocks.simulator import SimulationEngine

api = APIRouter()
payments_api = api


class StkPushRequest(BaseModel):
    phone_number: Optional[Union[str, int]] = Field(default=None, description="Subscriber MSISDN, e.g. 254712345678")
    amount: Optional[float] = None
    account_reference: Optional[str] = "TEST"
    description: Optional[str] = "Payment"
    callback_url: Optional[str] = Field(default=None, description="Receives the STK callback envelope")
    auto_complete: Optional[bool] = Field(default=None, description="Resolve automatically after the M-Pesa delay")
    force_success: Optional[bool] = Field(default=None, description="true/false to force the outcome, omit for random")


class BankTransferRequest(BaseModel):
    account_number: Optional[Union[str, int]] = None
    bank_code: Optional[Union[str, int]] = None
    amount: Optional[float] = None
    reference: Optional[str] = "TEST"
    narration: Optional[str] = "Payment"
    callback_url: Optional[str] = None
    auto_complete: Optional[bool] = None
    force_success: Optional[bool] = None


class ResolveRequest(BaseModel):
    transaction_id: Optional[str] = None
    force_success: Optional[bool] = None


def get_engine(request: Request) -> SimulationEngine:
    """Dependency returning the engine owned by the application."""
    return request.app.state.engine


def _respond(result: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=ErrorHandler.status_code_for(result), content=result)


def _missing_transaction_id() -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "message": "Missing transaction_id"})


def _auto_complete(engine: SimulationEngine, requested: Optional[bool]) -> bool:
    return engine.config.auto_complete_default if requested is None else requested


@api.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy", "service": "payment-simulator"}


@api.get("/debug/tasks", tags=["Health"])
async def debug_tasks(engine: SimulationEngine = Depends(get_engine)):
    """Outstanding scheduled completions and stored transaction count."""
    return engine.stats()


@api.post("/payments/mpesa/stk-push", tags=["M-Pesa"])
async def initiate_stk_push(request: StkPushRequest, engine: SimulationEngine = Depends(get_engine)):
    result = engine.initiate_mpesa_payment(
        phone_number=request.phone_number,
        amount=request.amount,
        account_reference=request.account_reference,
        description=request.description,
        callback_url=request.callback_url,
        auto_complete=_auto_complete(engine, request.auto_complete),
        force_success=request.force_success,
    )
    return _respond(result)


@api.post("/payments/mpesa/callback", tags=["M-Pesa"])
async def simulate_mpesa_callback(request: ResolveRequest, engine: SimulationEngine = Depends(get_engine)):
    if not request.transaction_id:
        return _missing_transaction_id()
    result = await engine.simulate_mpesa_callback(request.transaction_id, force_success=request.force_success)
    return _respond(result)


@api.post("/payments/bank-transfer", tags=["Bank Transfer"])
async def initiate_bank_transfer(request: BankTransferRequest, engine: SimulationEngine = Depends(get_engine)):
    result = engine.initiate_bank_transfer(
        account_number=request.account_number,
        bank_code=request.bank_code,
        amount=request.amount,
        reference=request.reference,
        narration=request.narration,
        callback_url=request.callback_url,
        auto_complete=_auto_complete(engine, request.auto_complete),
        force_success=request.force_success,
    )
    return _respond(result)


@api.post("/payments/bank-transfer/complete", tags=["Bank Transfer"])
async def complete_bank_transfer(request: ResolveRequest, engine: SimulationEngine = Depends(get_engine)):
    if not request.transaction_id:
        return _missing_transaction_id()
    result = await engine.simulate_bank_transfer_completion(request.transaction_id, force_success=request.force_success)
    return _respond(result)


@api.post("/payments/reset", tags=["Payments"])
async def reset_payments(engine: SimulationEngine = Depends(get_engine)):
    return engine.reset_transactions()


@api.get("/payments", tags=["Payments"])
async def list_payments(
    status: Optional[str] = Query(default=None, description="pending, processing, completed or failed"),
    method: Optional[str] = Query(default=None, description="mpesa or bank_transfer"),
    engine: SimulationEngine = Depends(get_engine),
):
    return engine.list_transactions(status=status, method=method)


@api.get("/payments/{transaction_id}", tags=["Payments"])
async def get_payment_status(transaction_id: str, engine: SimulationEngine = Depends(get_engine)):
    return _respond(engine.get_transaction_status(transaction_id))
