"""
Mobility module for the RAN simulation.

This module implements node mobility models and the mobility manager.
"""

from .mobility_models import ConstantVelocityModel, MobilityManager, MobilityModel, StaticModel

__all__ = ['ConstantVelocityModel', 'MobilityManager', 'MobilityModel', 'StaticModel']
