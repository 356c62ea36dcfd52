"""Pytest fixtures for the payment simulator tests."""

import json
import random

import httpx
import pytest

from payment_simulator.database.transactions import TransactionStore
from payment_simulator.integrations.clients.mocks.scheduler import CompletionScheduler
from payment_simulator.integrations.clients.mocks.simulator import SimulationEngine
from payment_simulator.integrations.clients.real_http.webhooks import WebhookDispatcher
from payment_simulator.utils.config_loader import SimulatorConfig


class RecordingReceiver:
    """httpx transport handler that records webhook POSTs and answers with a fixed status."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append({"url": str(request.url), "json": json.loads(request.content)})
        return httpx.Response(self.status_code, json={"success": True, "message": "Webhook received"})


def refuse_connection(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("[Errno 111] Connection refused", request=request)


@pytest.fixture
def fast_config():
    """Config with near-instant completion delays."""
    return SimulatorConfig(success_rate=0.95, mpesa_delay_seconds=0.02, bank_delay_seconds=0.03)


@pytest.fixture
def receiver():
    return RecordingReceiver()


@pytest.fixture
def make_engine(fast_config, receiver):
    """Factory for engines wired to an in-process webhook receiver."""

    def _make(success_rate=None, handler=None, seed=1234, config=None):
        cfg = config or fast_config
        if success_rate is not None:
            cfg = cfg.model_copy(update={"success_rate": success_rate})
        dispatcher = WebhookDispatcher(transport=httpx.MockTransport(handler or receiver))
        return SimulationEngine(
            config=cfg,
            store=TransactionStore(),
            dispatcher=dispatcher,
            scheduler=CompletionScheduler(),
            rng=random.Random(seed),
        )

    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def unreachable_engine(make_engine):
    """Engine whose webhook deliveries all fail with a refused connection."""
    return make_engine(handler=refuse_connection)
