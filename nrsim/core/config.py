"""
Configuration classes for the simulation framework
"""

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .errors import ConfigurationError
from ..network.geometry import Building, Vector


class _NamedChoice(Enum):
    """Enum selectable by value or alias at configuration time"""

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {}

    @classmethod
    def from_name(cls, name):
        if isinstance(name, cls):
            return name
        key = str(name).strip()
        for member in cls:
            if key == member.value or key.lower() == member.value.lower() or key.upper() == member.name:
                return member
        alias = cls._aliases().get(key.lower())
        if alias is not None:
            return cls(alias)
        choices = ", ".join(f"'{member.value}'" for member in cls)
        raise ConfigurationError(f"Unknown {cls.__doc__.strip().lower()} '{name}'. Choose among {choices}.")


class ScenarioClass(_NamedChoice):
    """Scenario class"""
    RMA = "RMa"
    UMA = "UMa"
    UMI_STREET_CANYON = "UMi-StreetCanyon"
    INH_OFFICE_MIXED = "InH-OfficeMixed"
    INH_OFFICE_OPEN = "InH-OfficeOpen"
    UMI_BUILDINGS = "UMi-Buildings"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {
            'rural-macro': "RMa",
            'rural_macro': "RMa",
            'urban-macro': "UMa",
            'urban_macro': "UMa",
            'urban-micro-street-canyon': "UMi-StreetCanyon",
            'urban_micro': "UMi-StreetCanyon",
            'indoor-office': "InH-OfficeMixed",
            'indoor': "InH-OfficeMixed",
            'urban-micro-with-buildings': "UMi-Buildings",
        }


class ConditionPolicy(_NamedChoice):
    """Channel condition policy"""
    ALWAYS_LOS = "los"
    ALWAYS_NLOS = "nlos"
    PROBABILISTIC = "probabilistic"
    BUILDINGS = "buildings"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        # Single-letter forms used by the mmWave scenario scripts
        return {'l': "los", 'n': "nlos", 'random': "probabilistic"}


class ChannelModelType(_NamedChoice):
    """Channel model"""
    THREE_GPP = "three_gpp"
    FREE_SPACE = "free_space"


class MobilityType(_NamedChoice):
    """Mobility model"""
    STATIC = "static"
    CONSTANT_VELOCITY = "constant_velocity"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {'stationary': "static", 'linear': "constant_velocity"}


class NodeRole(Enum):
    """Role of a node in the topology"""
    BASE_STATION = "base_station"
    TERMINAL = "terminal"
    REMOTE_HOST = "remote_host"


class FlowDirection(_NamedChoice):
    """Flow direction"""
    DOWNLINK = "downlink"
    UPLINK = "uplink"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {'dl': "downlink", 'ul': "uplink"}


@dataclass(frozen=True)
class ScenarioProfile:
    """Default antenna heights for a scenario class"""
    bs_height: float  # meters
    ut_height: float  # meters


SCENARIO_PROFILES: Dict[ScenarioClass, ScenarioProfile] = {
    ScenarioClass.RMA: ScenarioProfile(bs_height=35.0, ut_height=1.5),
    ScenarioClass.UMA: ScenarioProfile(bs_height=25.0, ut_height=1.5),
    ScenarioClass.UMI_STREET_CANYON: ScenarioProfile(bs_height=10.0, ut_height=1.5),
    ScenarioClass.INH_OFFICE_MIXED: ScenarioProfile(bs_height=3.0, ut_height=1.0),
    ScenarioClass.INH_OFFICE_OPEN: ScenarioProfile(bs_height=3.0, ut_height=1.0),
    ScenarioClass.UMI_BUILDINGS: ScenarioProfile(bs_height=10.0, ut_height=1.5),
}


@dataclass(frozen=True)
class NodeConfig:
    """Initial state of a base station or terminal"""
    position: Tuple[float, ...]  # (x, y) or (x, y, z) in meters
    velocity: Tuple[float, float, float] = (0.0, 0.0, 0.0)  # m/s
    mobility_model: Optional[MobilityType] = None  # inferred from velocity when None
    node_id: Optional[int] = None
    antenna_height: Optional[float] = None  # meters, scenario default when None

    def resolved_mobility(self) -> MobilityType:
        if self.mobility_model is not None:
            return MobilityType.from_name(self.mobility_model)
        if any(v != 0.0 for v in self.velocity):
            return MobilityType.CONSTANT_VELOCITY
        return MobilityType.STATIC


@dataclass(frozen=True)
class FlowConfig:
    """Periodic packet flow between a terminal and the remote host"""
    terminal: int  # terminal node id
    direction: FlowDirection = FlowDirection.DOWNLINK
    interval: float = 0.010  # seconds
    packet_size: int = 1500  # bytes
    max_packets: Optional[int] = None  # None = unlimited
    start_time: float = 0.0  # seconds
    stop_time: Optional[float] = None  # seconds, end of simulation when None
    flow_id: Optional[int] = None


@dataclass(frozen=True)
class ScenarioConfig:
    """Immutable scenario parameters, set once before the run"""
    # Channel configuration
    scenario: ScenarioClass = ScenarioClass.UMI_BUILDINGS
    frequency: float = 28e9  # Hz
    bandwidth: float = 100e6  # Hz
    condition_policy: ConditionPolicy = ConditionPolicy.PROBABILISTIC
    channel_model: ChannelModelType = ChannelModelType.THREE_GPP
    blockage: bool = False
    blockage_loss_db: float = 20.0  # dB when the path is obstructed
    tx_power: float = 40.0  # dBm
    noise_figure: float = 7.0  # dB
    shadowing: bool = False

    # Simulation configuration
    simulation_time: float = 1.0  # seconds
    random_seed: int = 1
    log_level: str = "INFO"
    mobility_update_interval: float = 0.1  # seconds
    handover_interval: Optional[float] = None  # seconds, manual attachment only when None
    auto_attach: bool = True  # attach every terminal to its best cell at t=0

    # Topology and traffic
    base_stations: Tuple[NodeConfig, ...] = ()
    terminals: Tuple[NodeConfig, ...] = ()
    buildings: Tuple[Building, ...] = ()
    flows: Tuple[FlowConfig, ...] = ()
    use_remote_host: bool = True

    def __post_init__(self):
        # Normalise names and lists so configs built in code behave like parsed ones
        object.__setattr__(self, 'scenario', ScenarioClass.from_name(self.scenario))
        object.__setattr__(self, 'condition_policy', ConditionPolicy.from_name(self.condition_policy))
        object.__setattr__(self, 'channel_model', ChannelModelType.from_name(self.channel_model))
        for name in ('base_stations', 'terminals', 'buildings', 'flows'):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @property
    def profile(self) -> ScenarioProfile:
        return SCENARIO_PROFILES[self.scenario]

    def antenna_height(self, role: NodeRole) -> float:
        """Default antenna height for a node role in this scenario"""
        if role == NodeRole.BASE_STATION:
            return self.profile.bs_height
        if role == NodeRole.TERMINAL:
            return self.profile.ut_height
        return 0.0

    def node_layout(self) -> List[Tuple[int, NodeRole, NodeConfig]]:
        """
        Resolve node ids.

        Explicit ids are kept; the remaining nodes take the lowest free ids in
        declaration order, base stations first.
        """
        explicit = [n.node_id for n in self.base_stations + self.terminals if n.node_id is not None]
        used = set(explicit)
        next_id = 0
        layout = []
        for role, nodes in ((NodeRole.BASE_STATION, self.base_stations),
                            (NodeRole.TERMINAL, self.terminals)):
            for node in nodes:
                node_id = node.node_id
                if node_id is None:
                    while next_id in used:
                        next_id += 1
                    node_id = next_id
                    used.add(node_id)
                layout.append((node_id, role, node))
        return layout

    @property
    def remote_host_id(self) -> Optional[int]:
        if not self.use_remote_host:
            return None
        ids = [node_id for node_id, _, _ in self.node_layout()]
        return max(ids) + 1 if ids else 0

    def validate(self):
        """
        Check the configuration before any simulation state is built.

        Raises:
            ConfigurationError: On the first invalid parameter found
        """
        if not self.frequency > 0:
            raise ConfigurationError(f"Carrier frequency must be positive, got {self.frequency}")
        if not self.bandwidth > 0:
            raise ConfigurationError(f"Bandwidth must be positive, got {self.bandwidth}")
        if not self.simulation_time > 0:
            raise ConfigurationError(f"Simulation time must be positive, got {self.simulation_time}")
        if not math.isfinite(self.tx_power):
            raise ConfigurationError(f"Transmit power must be finite, got {self.tx_power}")
        if self.blockage_loss_db < 0:
            raise ConfigurationError(f"Blockage loss must be >= 0 dB, got {self.blockage_loss_db}")
        if not self.mobility_update_interval > 0:
            raise ConfigurationError(
                f"Mobility update interval must be positive, got {self.mobility_update_interval}")
        if self.handover_interval is not None and not self.handover_interval > 0:
            raise ConfigurationError(f"Handover interval must be positive, got {self.handover_interval}")
        if self.random_seed < 0:
            raise ConfigurationError(f"Random seed must be non-negative, got {self.random_seed}")
        if not self.base_stations:
            raise ConfigurationError("Scenario needs at least one base station")
        if not self.terminals:
            raise ConfigurationError("Scenario needs at least one terminal")

        layout = self.node_layout()
        seen = set()
        for node_id, role, node in layout:
            if node_id in seen:
                raise ConfigurationError(f"Duplicate node id {node_id}")
            seen.add(node_id)
            if node_id < 0:
                raise ConfigurationError(f"Node ids must be non-negative, got {node_id}")
            try:
                Vector.from_sequence(node.position)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid position for node {node_id}: {e}") from e
            if len(node.velocity) != 3:
                raise ConfigurationError(f"Velocity of node {node_id} must have 3 components")
            mobility = node.resolved_mobility()
            if mobility == MobilityType.STATIC and any(v != 0.0 for v in node.velocity):
                raise ConfigurationError(f"Static node {node_id} cannot have a non-zero velocity")
            if node.antenna_height is not None and node.antenna_height < 0:
                raise ConfigurationError(f"Antenna height of node {node_id} must be >= 0")

        terminal_ids = {node_id for node_id, role, _ in layout if role == NodeRole.TERMINAL}
        flow_ids = set()
        for flow in self.flows:
            if not self.use_remote_host:
                raise ConfigurationError("Traffic flows require the remote host (use_remote_host=True)")
            if flow.terminal not in terminal_ids:
                raise ConfigurationError(f"Flow references unknown terminal {flow.terminal}")
            FlowDirection.from_name(flow.direction)
            if not flow.interval > 0:
                raise ConfigurationError(f"Flow interval must be positive, got {flow.interval}")
            if flow.packet_size <= 0:
                raise ConfigurationError(f"Packet size must be positive, got {flow.packet_size}")
            if flow.max_packets is not None and flow.max_packets < 0:
                raise ConfigurationError(f"Packet count limit must be >= 0, got {flow.max_packets}")
            if flow.start_time < 0:
                raise ConfigurationError(f"Flow start time must be >= 0, got {flow.start_time}")
            if flow.stop_time is not None and flow.stop_time <= flow.start_time:
                raise ConfigurationError(
                    f"Flow stop time {flow.stop_time} must be after start time {flow.start_time}")
            if flow.flow_id is not None:
                if flow.flow_id in flow_ids:
                    raise ConfigurationError(f"Duplicate flow id {flow.flow_id}")
                flow_ids.add(flow.flow_id)

    def with_overrides(self, **changes) -> 'ScenarioConfig':
        """Copy of this configuration with some fields replaced"""
        return replace(self, **changes)
