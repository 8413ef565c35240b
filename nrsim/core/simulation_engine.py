"""
Main Simulation Engine for the RAN simulation core

This module wires the scheduler, topology, mobility, channel, attachment
and traffic components together from a ScenarioConfig and runs the
scenario to its stop time.
"""

import logging
import time
from typing import Any, Dict, Optional

from ..mobility.mobility_models import MobilityManager
from ..network.attachment import AttachmentManager
from ..network.channel import ChannelModel, create_channel_model
from ..network.geometry import Vector
from ..network.link import LinkEvaluator
from ..network.topology import Node, TopologyStore
from ..traffic.flows import TrafficGenerator
from ..traffic.sink import TraceSink
from ..utils.metrics import MetricsCollector, SimulationResults
from .config import FlowDirection, MobilityType, NodeRole, ScenarioConfig
from .random_streams import RandomStreams
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


class SimulationEngine:
    """
    Main simulation engine coordinating all components

    The configuration is validated before any state is built. Setup runs
    at t=0; run() then advances the scheduler to the configured simulation
    time and compiles the results.
    """

    def __init__(self, config: ScenarioConfig, channel_model: Optional[ChannelModel] = None):
        config.validate()
        self.config = config

        self.scheduler = Scheduler()
        self.random_streams = RandomStreams(config.random_seed)
        self.topology = TopologyStore()
        self.channel_model = channel_model if channel_model is not None else create_channel_model(config)

        # Initialize managers and collectors
        self.link_evaluator = LinkEvaluator(self.topology, self.channel_model, config,
                                            self.scheduler, self.random_streams)
        self.mobility_manager = MobilityManager(self.scheduler, self.topology, config.mobility_update_interval)
        self.attachment_manager = AttachmentManager(self.scheduler, self.topology, self.link_evaluator)
        self.sink = TraceSink()
        self.traffic_generator = TrafficGenerator(self.scheduler, self.topology, self.attachment_manager,
                                                  self.sink, self.link_evaluator)
        self.metrics = MetricsCollector()
        self.sink.connect(self.metrics.record_delivery)
        self.attachment_manager.attachment_changed.connect(self.metrics.record_attachment)

        self.remote_host_id: Optional[int] = None

        # Simulation state
        self.running = False
        self.is_setup = False

        logger.info(f"Simulation engine initialized: {config.scenario.value}, "
                    f"{len(config.base_stations)} base stations, {len(config.terminals)} terminals")

    def setup_network(self):
        """Create base stations, terminals and the remote host"""
        logger.info("Setting up network topology")

        for node_id, role, node_config in self.config.node_layout():
            height = node_config.antenna_height
            if len(node_config.position) == 2 and height is None:
                height = self.config.antenna_height(role)
            position = Vector.from_sequence(node_config.position, default_z=height)
            velocity = Vector.from_sequence(node_config.velocity)
            self.topology.add_node(Node(node_id, role, position, velocity, height))

        if self.config.use_remote_host:
            self.remote_host_id = self.config.remote_host_id
            self.topology.add_node(Node(self.remote_host_id, NodeRole.REMOTE_HOST, Vector(0.0, 0.0, 0.0)))

    def setup_mobility(self):
        """Install mobility models and start position sampling if anything moves"""
        logger.info("Setting up mobility models")

        for node_id, role, node_config in self.config.node_layout():
            self.mobility_manager.install(node_id, node_config.resolved_mobility())

        if any(m.mobility_type == MobilityType.CONSTANT_VELOCITY for m in self.mobility_manager.mobility_models.values()):
            self.mobility_manager.start()

    def setup_attachment(self):
        """Initial attachment of terminals and optional periodic re-evaluation"""
        if self.config.auto_attach:
            self.attachment_manager.attach_closest()

        for terminal in self.topology.terminals():
            if not self.attachment_manager.is_attached(terminal.node_id):
                logger.warning(f"Terminal {terminal.node_id} is left unattached; its flows will not send")

        if self.config.handover_interval is not None:
            self.attachment_manager.start_periodic_reevaluation(self.config.handover_interval)

    def setup_traffic(self):
        """Register configured flows and schedule their first emissions"""
        logger.info("Setting up traffic generators")

        for flow_config in self.config.flows:
            if FlowDirection.from_name(flow_config.direction) == FlowDirection.DOWNLINK:
                source, destination = self.remote_host_id, flow_config.terminal
            else:
                source, destination = flow_config.terminal, self.remote_host_id

            self.traffic_generator.add_flow(
                source=source,
                destination=destination,
                interval=flow_config.interval,
                packet_size=flow_config.packet_size,
                max_packets=flow_config.max_packets,
                start_time=flow_config.start_time,
                stop_time=flow_config.stop_time,
                flow_id=flow_config.flow_id
            )

        self.traffic_generator.start()

    def setup(self):
        """Build the scenario at t=0. Idempotent."""
        if self.is_setup:
            return
        self.setup_network()
        self.setup_mobility()
        self.setup_attachment()
        self.setup_traffic()
        self.is_setup = True

    def run(self) -> SimulationResults:
        """
        Run the simulation

        Returns:
            SimulationResults with the delivery trace, attachment history and statistics
        """
        self.setup()
        logger.info(f"Starting simulation for {self.config.simulation_time} seconds")

        start = time.time()
        self.running = True
        try:
            self.scheduler.run(self.config.simulation_time)
        except Exception as e:
            logger.error(f"Simulation error at {self.scheduler.now():.6f}s: {e}")
            raise
        finally:
            self.running = False

        logger.info(f"Simulation completed: {len(self.sink)} packets delivered, "
                    f"{self.scheduler.stats['executed']} events executed")

        results = self.metrics.generate_results(
            self.traffic_generator.flow_summaries(),
            self.final_positions(),
            self.config.simulation_time
        )
        results.execution_time = time.time() - start
        results.config = self.config
        return results

    def final_positions(self) -> Dict[int, tuple]:
        now = self.scheduler.now()
        return {node.node_id: node.position_at(now).as_tuple()
                for node in self.topology.base_stations() + self.topology.terminals()}

    def save_results(self, results: SimulationResults, filename: str):
        """Save simulation results to a .json or .csv file"""
        self.metrics.export_results(results, filename)

    def get_current_state(self) -> Dict[str, Any]:
        """Get current simulation state"""
        return {
            'time': self.scheduler.now(),
            'running': self.running,
            'positions': self.final_positions(),
            'attachments': {terminal.node_id: self.attachment_manager.serving_cell(terminal.node_id)
                            for terminal in self.topology.terminals()},
            'active_flows': sum(1 for flow in self.traffic_generator.flows.values() if flow.is_active),
            'pending_events': self.scheduler.pending_count(),
            'delivered_packets': len(self.sink)
        }
