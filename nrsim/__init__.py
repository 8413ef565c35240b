"""
Discrete-event RAN simulation core

This package provides an event scheduler, a dynamic topology of base
stations and terminals, 3GPP channel models, terminal attachment and
periodic traffic flows with delivery tracing.
"""

__version__ = "1.0.0"
