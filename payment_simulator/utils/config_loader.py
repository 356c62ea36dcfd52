"""
Simulator configuration loader (success rate, completion delays, webhook timeout).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "PAYMENT_SIMULATOR_"

_ENV_OVERRIDES = {
    "SUCCESS_RATE": "success_rate",
    "MPESA_DELAY_SECONDS": "mpesa_delay_seconds",
    "BANK_DELAY_SECONDS": "bank_delay_seconds",
    "WEBHOOK_TIMEOUT_SECONDS": "webhook_timeout_seconds",
}


class SimulatorConfig(BaseModel):
    success_rate: float = Field(default=0.95, ge=0.0, le=1.0)
    mpesa_delay_seconds: float = Field(default=2.0, ge=0.0)
    bank_delay_seconds: float = Field(default=3.0, ge=0.0)
    webhook_timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)
    auto_complete_default: bool = True


def _default_config_path() -> Path:
    env_path = os.getenv(f"{ENV_PREFIX}CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return Path(__file__).parent.parent.parent / "config" / "simulator_config.yml"


def load_simulator_config(config_path: Optional[Path] = None) -> SimulatorConfig:
    """
    Load and validate simulator configuration.

    Values come from the YAML file (if present) and are then overridden by
    ``PAYMENT_SIMULATOR_*`` environment variables, including those in a local
    ``.env`` file.

    Raises:
        ValidationError: If the merged values don't match the schema
    """
    load_dotenv()

    config_path = Path(config_path) if config_path else _default_config_path()

    data = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    else:
        logger.info("Simulator config %s not found; using defaults", config_path)

    for env_suffix, key in _ENV_OVERRIDES.items():
        value = os.getenv(f"{ENV_PREFIX}{env_suffix}")
        if value not in (None, ""):
            data[key] = value

    try:
        cfg = SimulatorConfig(**data)
        logger.info(
            "Simulator config loaded: success_rate=%.0f%% mpesa_delay=%.1fs bank_delay=%.1fs",
            cfg.success_rate * 100,
            cfg.mpesa_delay_seconds,
            cfg.bank_delay_seconds,
        )
        return cfg
    except ValidationError as e:
        logger.error("Simulator config validation failed: %s", e)
        raise
