"""Core simulation components: scheduler, random streams, tracing and errors.

The configuration and the engine live in nrsim.core.config and
nrsim.core.simulation_engine.
"""

from .errors import (ConfigurationError, NoCandidateError, NodeRoleError, SchedulingError,
                     SimulationError, UnknownFlowError, UnknownNodeError)
from .random_streams import RandomStreams
from .scheduler import EventHandle, Scheduler
from .trace import TraceSource

__all__ = ['ConfigurationError', 'NoCandidateError', 'NodeRoleError', 'SchedulingError',
           'SimulationError', 'UnknownFlowError', 'UnknownNodeError', 'RandomStreams',
           'EventHandle', 'Scheduler', 'TraceSource']
