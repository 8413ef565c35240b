"""
Utility modules for the RAN simulation.

This module provides configuration parsing and metrics collection.
"""

from .config_parser import ConfigParser
from .metrics import MetricsCollector, SimulationResults

__all__ = ['ConfigParser', 'MetricsCollector', 'SimulationResults']
