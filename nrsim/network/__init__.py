"""
Network module for the RAN simulation.

Topology, channel models, link evaluation and attachment live in the
submodules; only the geometry primitives are re-exported here because the
configuration module depends on them.
"""

from .geometry import Building, Vector

__all__ = ['Building', 'Vector']
