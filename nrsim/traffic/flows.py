"""
Traffic Generation for the RAN Simulation

This module implements periodic packet flows between a terminal and the
remote host. Each flow emits packets through scheduler events and hands
every routed packet to the trace sink.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Any

from ..core.config import FlowDirection, NodeRole
from ..core.errors import ConfigurationError, UnknownFlowError
from ..core.scheduler import EventHandle, Scheduler
from ..network.attachment import AttachmentManager
from ..network.link import LinkEvaluator
from ..network.topology import TopologyStore
from .sink import TraceRecord, TraceSink

logger = logging.getLogger(__name__)


class FlowState(Enum):
    """Lifecycle of a traffic flow"""
    PENDING = "pending"        # first emission not reached yet
    ACTIVE = "active"          # next emission scheduled
    SUSPENDED = "suspended"    # terminal was unattached at emission time
    COMPLETED = "completed"    # budget exhausted or stop time reached
    STOPPED = "stopped"        # stopped explicitly


@dataclass(frozen=True)
class Packet:
    """Opaque payload with a size"""
    packet_id: int
    flow_id: int
    source: int
    destination: int
    size: int  # bytes
    created_at: float


class TrafficFlow:
    """A periodic packet flow active in [start_time, stop_time)"""

    def __init__(self, flow_id: int, source: int, destination: int, terminal_id: int,
                 direction: FlowDirection, interval: float, packet_size: int,
                 max_packets: Optional[int] = None, start_time: float = 0.0,
                 stop_time: float = math.inf):
        self.flow_id = flow_id
        self.source = source
        self.destination = destination
        self.terminal_id = terminal_id
        self.direction = direction
        self.interval = interval  # seconds
        self.packet_size = packet_size  # bytes
        self.max_packets = max_packets
        self.start_time = start_time
        self.stop_time = stop_time

        self.state = FlowState.PENDING
        self.packets_sent = 0
        self.bytes_sent = 0
        self.suspensions = 0
        self.next_event: Optional[EventHandle] = None

        # Emission times are anchor_time + (k - anchor_count) * interval
        self._anchor_time = start_time
        self._anchor_count = 0

    @property
    def budget_exhausted(self) -> bool:
        return self.max_packets is not None and self.packets_sent >= self.max_packets

    @property
    def is_active(self) -> bool:
        return self.state in (FlowState.PENDING, FlowState.ACTIVE)

    def next_emission_time(self) -> float:
        return self._anchor_time + (self.packets_sent - self._anchor_count) * self.interval

    def rebase(self, time: float):
        self._anchor_time = time
        self._anchor_count = self.packets_sent

    def __repr__(self):
        return (f"TrafficFlow(id={self.flow_id}, {self.source}->{self.destination}, "
                f"{self.direction.value}, sent={self.packets_sent}, state={self.state.value})")


class TrafficGenerator:
    """
    Generates packets for every registered flow

    A packet is routed only if the flow's terminal is attached when the
    emission event runs; delivery then always succeeds and is recorded in
    the sink at the emission time.
    """

    def __init__(self, scheduler: Scheduler, topology: TopologyStore,
                 attachment_manager: AttachmentManager, sink: TraceSink,
                 link_evaluator: Optional[LinkEvaluator] = None):
        self.scheduler = scheduler
        self.topology = topology
        self.attachment_manager = attachment_manager
        self.sink = sink
        self.link_evaluator = link_evaluator

        self.flows: Dict[int, TrafficFlow] = {}
        self._next_packet_id = 0

        # Statistics
        self.stats = {
            'packets_generated': 0,
            'bytes_generated': 0,
            'suspensions': 0
        }

        logger.info("Traffic Generator initialized")

    def add_flow(self, source: int, destination: int, interval: float, packet_size: int,
                 max_packets: Optional[int] = None, start_time: float = 0.0,
                 stop_time: Optional[float] = None, flow_id: Optional[int] = None) -> TrafficFlow:
        """
        Register a flow between a terminal and another node.

        Args:
            source: Source node id
            destination: Destination node id
            interval: Inter-packet interval in seconds
            packet_size: Packet size in bytes
            max_packets: Packet budget, unlimited when None
            start_time: Time of the first emission
            stop_time: No packet is emitted at or after this time
            flow_id: Explicit flow id, next free id when None

        Returns:
            The registered TrafficFlow
        """
        source_node = self.topology.get(source)
        destination_node = self.topology.get(destination)

        if source_node.role == NodeRole.TERMINAL:
            terminal_id, direction = source, FlowDirection.UPLINK
        elif destination_node.role == NodeRole.TERMINAL:
            terminal_id, direction = destination, FlowDirection.DOWNLINK
        else:
            raise ConfigurationError(f"Flow {source} -> {destination} has no terminal endpoint")

        if not interval > 0:
            raise ConfigurationError(f"Flow interval must be positive, got {interval}")
        if packet_size <= 0:
            raise ConfigurationError(f"Packet size must be positive, got {packet_size}")
        if max_packets is not None and max_packets < 0:
            raise ConfigurationError(f"Packet count limit must be >= 0, got {max_packets}")
        if start_time < 0:
            raise ConfigurationError(f"Flow start time must be >= 0, got {start_time}")
        stop_time = math.inf if stop_time is None else stop_time
        if stop_time <= start_time:
            raise ConfigurationError(f"Flow stop time {stop_time} must be after start time {start_time}")

        if flow_id is None:
            flow_id = max(self.flows, default=-1) + 1
        elif flow_id in self.flows:
            raise ConfigurationError(f"Duplicate flow id {flow_id}")

        flow = TrafficFlow(flow_id, source, destination, terminal_id, direction, interval,
                           packet_size, max_packets, start_time, stop_time)
        self.flows[flow_id] = flow

        logger.info(f"Added {direction.value} flow {flow_id}: {source} -> {destination}, "
                    f"{packet_size}B every {interval * 1000:.3f}ms from {start_time}s")
        return flow

    def start(self):
        """Schedule the first emission of every pending flow"""
        now = self.scheduler.now()
        for flow in sorted(self.flows.values(), key=lambda f: f.flow_id):
            if flow.state != FlowState.PENDING or flow.next_event is not None:
                continue
            if flow.max_packets == 0:
                flow.state = FlowState.COMPLETED
                continue
            flow.next_event = self.scheduler.schedule(max(flow.start_time - now, 0.0), self._emit, flow)

    def get_flow(self, flow_id: int) -> TrafficFlow:
        try:
            return self.flows[flow_id]
        except KeyError:
            raise UnknownFlowError(f"Unknown flow id {flow_id}") from None

    def stop_flow(self, flow_id: int):
        """Stop a flow, cancelling its pending emission"""
        flow = self.get_flow(flow_id)
        self.scheduler.cancel(flow.next_event)
        flow.next_event = None
        if flow.state != FlowState.COMPLETED:
            flow.state = FlowState.STOPPED
        logger.info(f"Stopped flow {flow_id} after {flow.packets_sent} packets")

    def resume_flow(self, flow_id: int) -> bool:
        """
        Re-arm a suspended or stopped flow at the current time.

        Returns:
            True if an emission was scheduled
        """
        flow = self.get_flow(flow_id)
        now = self.scheduler.now()
        if flow.state not in (FlowState.SUSPENDED, FlowState.STOPPED):
            return False
        if flow.budget_exhausted or now >= flow.stop_time:
            flow.state = FlowState.COMPLETED
            return False

        emission_time = max(now, flow.start_time)
        flow.rebase(emission_time)
        flow.state = FlowState.PENDING if emission_time > now else FlowState.ACTIVE
        flow.next_event = self.scheduler.schedule(emission_time - now, self._emit, flow)
        logger.info(f"Resumed flow {flow_id} at {emission_time:.6f}s")
        return True

    def _emit(self, flow: TrafficFlow):
        now = self.scheduler.now()
        flow.next_event = None

        if now >= flow.stop_time or flow.budget_exhausted:
            flow.state = FlowState.COMPLETED
            logger.debug(f"Flow {flow.flow_id} completed at {now:.6f}s")
            return

        attachment = self.attachment_manager.get_attachment(flow.terminal_id)
        if attachment is None:
            flow.state = FlowState.SUSPENDED
            flow.suspensions += 1
            self.stats['suspensions'] += 1
            logger.debug(f"Flow {flow.flow_id} suspended at {now:.6f}s: terminal {flow.terminal_id} is unattached")
            return

        packet = Packet(self._next_packet_id, flow.flow_id, flow.source, flow.destination,
                        flow.packet_size, now)
        self._next_packet_id += 1
        flow.packets_sent += 1
        flow.bytes_sent += packet.size
        self.stats['packets_generated'] += 1
        self.stats['bytes_generated'] += packet.size

        quality = None
        if self.link_evaluator is not None:
            quality = self.link_evaluator.evaluate(attachment.cell_id, flow.terminal_id).quality

        self.sink.record(TraceRecord(
            time=now,
            imsi=flow.terminal_id,
            cell_id=attachment.cell_id,
            rnti=attachment.rnti,
            packet_size=packet.size,
            flow_id=flow.flow_id,
            direction=flow.direction.value,
            link_quality=quality
        ))

        next_time = flow.next_emission_time()
        if flow.budget_exhausted or next_time >= flow.stop_time:
            flow.state = FlowState.COMPLETED
            logger.debug(f"Flow {flow.flow_id} completed after {flow.packets_sent} packets")
            return

        flow.state = FlowState.ACTIVE
        flow.next_event = self.scheduler.schedule(max(next_time - now, 0.0), self._emit, flow)

    def get_statistics(self) -> Dict[str, Any]:
        """Get traffic statistics"""
        states: Dict[str, int] = {state.value: 0 for state in FlowState}
        for flow in self.flows.values():
            states[flow.state.value] += 1
        return {
            **self.stats,
            'total_flows': len(self.flows),
            'flow_states': states
        }

    def flow_summaries(self) -> List[Dict[str, Any]]:
        return [
            {
                'flow_id': flow.flow_id,
                'source': flow.source,
                'destination': flow.destination,
                'terminal_id': flow.terminal_id,
                'direction': flow.direction.value,
                'interval': flow.interval,
                'packet_size': flow.packet_size,
                'max_packets': flow.max_packets,
                'start_time': flow.start_time,
                'stop_time': None if math.isinf(flow.stop_time) else flow.stop_time,
                'packets_sent': flow.packets_sent,
                'bytes_sent': flow.bytes_sent,
                'suspensions': flow.suspensions,
                'state': flow.state.value
            }
            for flow in sorted(self.flows.values(), key=lambda f: f.flow_id)
        ]
