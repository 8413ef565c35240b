"""
Mobility Models for the RAN Simulation

This module implements the node mobility models and the manager that
keeps sampled positions up to date through periodic scheduler events.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple, Any

import numpy as np

from ..core.config import MobilityType
from ..core.errors import ConfigurationError
from ..core.scheduler import EventHandle, Scheduler
from ..core.trace import TraceSource
from ..network.geometry import Vector
from ..network.topology import Node, TopologyStore

logger = logging.getLogger(__name__)


class MobilityModel(ABC):
    """Abstract base class for mobility models"""

    mobility_type: MobilityType = None

    def __init__(self, node: Node):
        self.node = node

    def get_position(self, time: float) -> Vector:
        """Exact position at a simulation time"""
        return self.node.position_at(time)

    @abstractmethod
    def set_velocity(self, velocity: Vector, time: float):
        """Change the node velocity from the given time on"""
        pass

    @property
    def is_moving(self) -> bool:
        return not self.node.velocity.is_zero()


class StaticModel(MobilityModel):
    """Static mobility model - velocity is always zero"""

    mobility_type = MobilityType.STATIC

    def __init__(self, node: Node):
        super().__init__(node)
        if not node.velocity.is_zero():
            raise ConfigurationError(f"Static node {node.node_id} cannot have a non-zero velocity")

    def set_velocity(self, velocity: Vector, time: float):
        if not velocity.is_zero():
            raise ConfigurationError(f"Cannot set a velocity on static node {self.node.node_id}")


class ConstantVelocityModel(MobilityModel):
    """Constant velocity model - straight line movement, unbounded area"""

    mobility_type = MobilityType.CONSTANT_VELOCITY

    def set_velocity(self, velocity: Vector, time: float):
        self.node.set_velocity(velocity, time)


MOBILITY_MODELS = {
    MobilityType.STATIC: StaticModel,
    MobilityType.CONSTANT_VELOCITY: ConstantVelocityModel,
}


class MobilityManager:
    """
    Mobility Manager for coordinating node movement in the simulation

    Positions are always computed analytically. The periodic update event
    only samples moving nodes for observers and trajectory recording.
    """

    def __init__(self, scheduler: Scheduler, topology: TopologyStore, update_interval: float = 0.1):
        if update_interval <= 0:
            raise ConfigurationError(f"Mobility update interval must be positive, got {update_interval}")
        self.scheduler = scheduler
        self.topology = topology
        self.update_interval = update_interval  # seconds
        self.mobility_models: Dict[int, MobilityModel] = {}
        self.trajectories: Dict[int, List[Tuple[float, Vector]]] = {}
        self.position_updated = TraceSource("position_updated")
        self._update_event: EventHandle = None

        logger.info("Mobility Manager initialized")

    def install(self, node_id: int, mobility_type: MobilityType) -> MobilityModel:
        """Install a mobility model on a node"""
        node = self.topology.get(node_id)
        model_class = MOBILITY_MODELS[MobilityType.from_name(mobility_type)]
        model = model_class(node)
        self.mobility_models[node_id] = model
        self.trajectories[node_id] = [(self.scheduler.now(), node.position_at(self.scheduler.now()))]

        logger.info(f"Installed {model.mobility_type.value} mobility on node {node_id}")
        return model

    def start(self):
        """Start the periodic position update process"""
        if self._update_event is None or not self._update_event.pending:
            self._update_event = self.scheduler.schedule(self.update_interval, self._update_positions)

    def stop(self):
        self.scheduler.cancel(self._update_event)
        self._update_event = None

    def _update_positions(self):
        now = self.scheduler.now()
        for node_id, model in sorted(self.mobility_models.items()):
            if not model.is_moving:
                continue
            position = model.get_position(now)
            self.trajectories[node_id].append((now, position))
            self.position_updated(now, node_id, position)

        self._update_event = self.scheduler.schedule(self.update_interval, self._update_positions)

    def get_position(self, node_id: int) -> Vector:
        """Current position of a node"""
        return self.topology.position_of(node_id, self.scheduler.now())

    def set_position(self, node_id: int, position: Vector):
        """Teleport a node to a new position at the current time"""
        self.topology.get(node_id).set_position(position, self.scheduler.now())
        self.trajectories.setdefault(node_id, []).append((self.scheduler.now(), position))
        self.position_updated(self.scheduler.now(), node_id, position)

    def set_velocity(self, node_id: int, velocity: Vector):
        """Set the velocity of a node from the current time on"""
        if node_id not in self.mobility_models:
            self.install(node_id, MobilityType.CONSTANT_VELOCITY)
        self.mobility_models[node_id].set_velocity(velocity, self.scheduler.now())
        logger.debug(f"Node {node_id} velocity set to {velocity.as_tuple()} at {self.scheduler.now():.3f}s")

    def get_positions(self) -> Dict[int, Vector]:
        """Current positions of all nodes with a mobility model"""
        now = self.scheduler.now()
        return {node_id: model.get_position(now) for node_id, model in sorted(self.mobility_models.items())}

    def get_velocities(self) -> Dict[int, Vector]:
        return {node_id: model.node.velocity for node_id, model in sorted(self.mobility_models.items())}

    def get_statistics(self) -> Dict[str, Any]:
        """Get mobility statistics"""
        total_nodes = len(self.mobility_models)
        moving_nodes = sum(1 for model in self.mobility_models.values() if model.is_moving)
        speeds = [model.node.velocity.magnitude for model in self.mobility_models.values()]

        return {
            'total_nodes': total_nodes,
            'moving_nodes': moving_nodes,
            'static_nodes': total_nodes - moving_nodes,
            'average_speed': float(np.mean(speeds)) if speeds else 0.0,
            'max_speed': float(np.max(speeds)) if speeds else 0.0,
            'mobility_models': {
                mobility_type.value: sum(1 for m in self.mobility_models.values()
                                         if m.mobility_type == mobility_type)
                for mobility_type in MobilityType
            }
        }
