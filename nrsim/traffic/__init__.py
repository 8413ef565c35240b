"""
Traffic module for the RAN simulation.

This module implements periodic packet flows and the delivery trace sink.
"""

from .flows import FlowState, Packet, TrafficFlow, TrafficGenerator
from .sink import TraceRecord, TraceSink

__all__ = ['FlowState', 'Packet', 'TrafficFlow', 'TrafficGenerator', 'TraceRecord', 'TraceSink']
