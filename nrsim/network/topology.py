"""
Topology store for the RAN simulation.

Holds every node record (base stations, terminals and the wired remote
host). Nodes are inserted while the scenario is built and persist for the
whole run; only their position and velocity change afterwards.
"""

import logging
from typing import Dict, Iterator, List, Optional

from ..core.config import NodeRole
from ..core.errors import ConfigurationError, UnknownNodeError
from .geometry import Vector, ZERO

logger = logging.getLogger(__name__)


class Node:
    """
    A node record with analytic kinematics.

    The position is stored as a reference point at a reference time plus a
    constant velocity, so the exact position at any later time is
    origin + velocity * (t - origin_time).
    """

    def __init__(self, node_id: int, role: NodeRole, position: Vector,
                 velocity: Vector = ZERO, antenna_height: Optional[float] = None):
        self.node_id = node_id
        self.role = role
        self.antenna_height = position.z if antenna_height is None else antenna_height
        self._origin = position
        self._origin_time = 0.0
        self.velocity = velocity

    @property
    def is_base_station(self) -> bool:
        return self.role == NodeRole.BASE_STATION

    @property
    def is_terminal(self) -> bool:
        return self.role == NodeRole.TERMINAL

    def position_at(self, time: float) -> Vector:
        """Exact position at the given simulation time"""
        if self.velocity.is_zero():
            return self._origin
        return self._origin + self.velocity * (time - self._origin_time)

    def set_position(self, position: Vector, time: float):
        self._origin = position
        self._origin_time = time

    def set_velocity(self, velocity: Vector, time: float):
        # Rebase so the trajectory stays continuous at the change
        self._origin = self.position_at(time)
        self._origin_time = time
        self.velocity = velocity

    def __repr__(self):
        return (f"Node(id={self.node_id}, role={self.role.value}, "
                f"position={self._origin.as_tuple()}, velocity={self.velocity.as_tuple()})")


class TopologyStore:
    """Mapping from node id to node record"""

    def __init__(self):
        self._nodes: Dict[int, Node] = {}

    def add_node(self, node: Node) -> Node:
        """
        Insert a node.

        Raises:
            ConfigurationError: If the id is already taken
        """
        if node.node_id in self._nodes:
            raise ConfigurationError(f"Node id {node.node_id} already exists in the topology")
        self._nodes[node.node_id] = node
        logger.info(f"Created {node.role.value} {node.node_id} at position {node.position_at(0.0).as_tuple()}")
        return node

    def get(self, node_id: int) -> Node:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNodeError(f"Unknown node id {node_id}") from None

    def __contains__(self, node_id: int) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def nodes_with_role(self, role: NodeRole) -> List[Node]:
        """Nodes with a role, sorted by id"""
        return sorted((n for n in self._nodes.values() if n.role == role), key=lambda n: n.node_id)

    def base_stations(self) -> List[Node]:
        return self.nodes_with_role(NodeRole.BASE_STATION)

    def terminals(self) -> List[Node]:
        return self.nodes_with_role(NodeRole.TERMINAL)

    def position_of(self, node_id: int, time: float) -> Vector:
        return self.get(node_id).position_at(time)

    def positions_at(self, time: float) -> Dict[int, Vector]:
        """Positions of all nodes at a given time, keyed by id"""
        return {node_id: node.position_at(time) for node_id, node in sorted(self._nodes.items())}
