"""
Utility modules for the payment simulator
"""
from .config_loader import SimulatorConfig, load_simulator_config

__all__ = [
    'SimulatorConfig',
    'load_simulator_config',
]
