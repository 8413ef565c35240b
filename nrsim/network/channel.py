"""
Channel models for the RAN simulation.

This module implements the channel condition policies and the propagation
models that turn a pair of nodes into a link condition and a scalar link
quality (SNR in dB, larger is better).
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

import numpy as np

from ..core.config import ChannelModelType, ConditionPolicy, NodeRole, ScenarioClass, ScenarioConfig
from .geometry import Vector
from .topology import Node

SPEED_OF_LIGHT = 3e8  # m/s
THERMAL_NOISE_DENSITY = -174.0  # dBm/Hz at 290K
MIN_DISTANCE = 1.0  # meters
MIN_HEIGHT = 0.1  # meters


class ChannelCondition(Enum):
    """Channel conditions for modeling."""
    LOS = "line_of_sight"
    NLOS = "non_line_of_sight"
    UNKNOWN = "unknown"


class LinkState(NamedTuple):
    """Result of a link evaluation"""
    condition: ChannelCondition
    quality: float  # dB, larger is better


@dataclass(frozen=True)
class LinkEndpoint:
    """Snapshot of a node as seen by the channel model at one instant"""
    node_id: int
    role: NodeRole
    position: Vector
    antenna_height: float

    @classmethod
    def from_node(cls, node: Node, time: float) -> 'LinkEndpoint':
        return cls(node.node_id, node.role, node.position_at(time), node.antenna_height)

    @property
    def antenna_position(self) -> Vector:
        return Vector(self.position.x, self.position.y, self.antenna_height)


# Shadow fading standard deviations (LOS, NLOS) in dB, 3GPP TR 38.901 Table 7.4.1-1
SHADOWING_STD = {
    ScenarioClass.RMA: (4.0, 8.0),
    ScenarioClass.UMA: (4.0, 6.0),
    ScenarioClass.UMI_STREET_CANYON: (4.0, 7.82),
    ScenarioClass.UMI_BUILDINGS: (4.0, 7.82),
    ScenarioClass.INH_OFFICE_MIXED: (3.0, 8.03),
    ScenarioClass.INH_OFFICE_OPEN: (3.0, 8.03),
}


def los_probability(scenario: ScenarioClass, distance_2d: float, ut_height: float = 1.5) -> float:
    """
    LOS probability as a function of 2D distance (3GPP TR 38.901 Table 7.4.2-1).

    Args:
        scenario: Scenario class
        distance_2d: Horizontal distance in meters
        ut_height: User terminal height in meters

    Returns:
        Probability of line of sight in [0, 1]
    """
    d = distance_2d
    if scenario == ScenarioClass.RMA:
        if d <= 10.0:
            return 1.0
        return math.exp(-(d - 10.0) / 1000.0)

    elif scenario == ScenarioClass.UMA:
        if d <= 18.0:
            return 1.0
        c_prime = 0.0 if ut_height <= 13.0 else ((ut_height - 13.0) / 10.0)**1.5
        return ((18.0 / d + math.exp(-d / 63.0) * (1.0 - 18.0 / d)) *
                (1.0 + c_prime * 5.0 / 4.0 * (d / 100.0)**3 * math.exp(-d / 150.0)))

    elif scenario in (ScenarioClass.UMI_STREET_CANYON, ScenarioClass.UMI_BUILDINGS):
        if d <= 18.0:
            return 1.0
        return 18.0 / d + math.exp(-d / 36.0) * (1.0 - 18.0 / d)

    elif scenario == ScenarioClass.INH_OFFICE_MIXED:
        if d <= 1.2:
            return 1.0
        if d < 6.5:
            return math.exp(-(d - 1.2) / 4.7)
        return math.exp(-(d - 6.5) / 32.6) * 0.32

    elif scenario == ScenarioClass.INH_OFFICE_OPEN:
        if d <= 5.0:
            return 1.0
        if d <= 49.0:
            return math.exp(-(d - 5.0) / 70.8)
        return math.exp(-(d - 49.0) / 211.7) * 0.54

    raise ValueError(f"No LOS probability curve for scenario {scenario}")


class ChannelModel(ABC):
    """Plug point for link evaluation between a base station and a terminal"""

    @abstractmethod
    def evaluate_link(self, node_a: LinkEndpoint, node_b: LinkEndpoint,
                      config: ScenarioConfig, rng: np.random.Generator) -> LinkState:
        """Condition and quality (dB, larger is better) of the link between two endpoints"""
        pass


class PathLossChannelModel(ChannelModel):
    """
    Base class for path loss based channel models.

    Subclasses provide the path loss; this class resolves the channel
    condition, blockage and noise and derives the link quality.
    """

    def evaluate_link(self, node_a: LinkEndpoint, node_b: LinkEndpoint,
                      config: ScenarioConfig, rng: np.random.Generator) -> LinkState:
        """
        Evaluate the link between two endpoints.

        Args:
            node_a: First endpoint
            node_b: Second endpoint
            config: Scenario configuration
            rng: Generator dedicated to this evaluation

        Returns:
            LinkState with the channel condition and the link SNR in dB
        """
        tx, rx = (node_b, node_a) if node_b.role == NodeRole.BASE_STATION and \
            node_a.role != NodeRole.BASE_STATION else (node_a, node_b)

        h_bs = max(tx.antenna_height, MIN_HEIGHT)
        h_ut = max(rx.antenna_height, MIN_HEIGHT)
        distance_2d = max(tx.position.distance_2d_to(rx.position), MIN_DISTANCE)
        distance_3d = math.sqrt(distance_2d**2 + (h_bs - h_ut)**2)

        condition = self.determine_condition(tx, rx, distance_2d, h_ut, config, rng)
        path_loss = self.calculate_path_loss(config.scenario, distance_2d, distance_3d,
                                             h_bs, h_ut, config.frequency, condition)

        if config.shadowing:
            path_loss = self.add_shadowing(path_loss, config.scenario, condition, rng)

        path_loss += self.blockage_loss(tx, rx, config)

        rx_power_dbm = config.tx_power - path_loss
        noise_power_dbm = self.calculate_thermal_noise_power(config.bandwidth) + config.noise_figure
        return LinkState(condition, rx_power_dbm - noise_power_dbm)

    @abstractmethod
    def calculate_path_loss(self, scenario: ScenarioClass, distance_2d: float, distance_3d: float,
                            h_bs: float, h_ut: float, frequency: float,
                            condition: ChannelCondition) -> float:
        """Path loss in dB"""
        pass

    def determine_condition(self, tx: LinkEndpoint, rx: LinkEndpoint, distance_2d: float,
                            ut_height: float, config: ScenarioConfig,
                            rng: np.random.Generator) -> ChannelCondition:
        """Resolve the channel condition according to the configured policy"""
        policy = config.condition_policy
        if policy == ConditionPolicy.ALWAYS_LOS:
            return ChannelCondition.LOS
        elif policy == ConditionPolicy.ALWAYS_NLOS:
            return ChannelCondition.NLOS
        elif policy == ConditionPolicy.BUILDINGS:
            if self.is_obstructed(tx, rx, config):
                return ChannelCondition.NLOS
            return ChannelCondition.LOS
        elif policy == ConditionPolicy.PROBABILISTIC:
            los_prob = los_probability(config.scenario, distance_2d, ut_height)
            return ChannelCondition.LOS if rng.random() < los_prob else ChannelCondition.NLOS

        return ChannelCondition.UNKNOWN

    @staticmethod
    def is_obstructed(tx: LinkEndpoint, rx: LinkEndpoint, config: ScenarioConfig) -> bool:
        """True if any building crosses the straight line between the antennas"""
        start, end = tx.antenna_position, rx.antenna_position
        return any(building.intersects_segment(start, end) for building in config.buildings)

    def blockage_loss(self, tx: LinkEndpoint, rx: LinkEndpoint, config: ScenarioConfig) -> float:
        """Additional attenuation in dB when blockage is enabled and the path is obstructed"""
        if config.blockage and self.is_obstructed(tx, rx, config):
            return config.blockage_loss_db
        return 0.0

    @staticmethod
    def add_shadowing(path_loss: float, scenario: ScenarioClass, condition: ChannelCondition,
                      rng: np.random.Generator) -> float:
        """
        Add log-normal shadowing to path loss.

        Args:
            path_loss: Path loss in dB
            scenario: Scenario class, selects the standard deviation
            condition: Channel condition
            rng: Generator for the draw

        Returns:
            Path loss with shadowing in dB
        """
        los_std, nlos_std = SHADOWING_STD[scenario]
        shadow_std = los_std if condition == ChannelCondition.LOS else nlos_std
        return path_loss + rng.normal(0.0, shadow_std)

    @staticmethod
    def calculate_thermal_noise_power(bandwidth_hz: float) -> float:
        """
        Calculate thermal noise power.

        Args:
            bandwidth_hz: Bandwidth in Hz

        Returns:
            Noise power in dBm
        """
        return THERMAL_NOISE_DENSITY + 10 * math.log10(bandwidth_hz)


class ThreeGppChannelModel(PathLossChannelModel):
    """
    3GPP TR 38.901 path loss models.

    NLOS path loss is max(PL_LOS, PL'_NLOS), so NLOS is never better than
    LOS at the same distance. Two-slope LOS models switch on the 2D
    breakpoint distance.
    """

    def calculate_path_loss(self, scenario: ScenarioClass, distance_2d: float, distance_3d: float,
                            h_bs: float, h_ut: float, frequency: float,
                            condition: ChannelCondition) -> float:
        frequency_ghz = frequency / 1e9

        if scenario == ScenarioClass.RMA:
            return self._rural_macro_path_loss(distance_2d, distance_3d, h_bs, h_ut, frequency_ghz, condition)
        elif scenario == ScenarioClass.UMA:
            return self._urban_macro_path_loss(distance_2d, distance_3d, h_bs, h_ut, frequency_ghz, condition)
        elif scenario in (ScenarioClass.UMI_STREET_CANYON, ScenarioClass.UMI_BUILDINGS):
            return self._urban_micro_path_loss(distance_2d, distance_3d, h_bs, h_ut, frequency_ghz, condition)
        elif scenario in (ScenarioClass.INH_OFFICE_MIXED, ScenarioClass.INH_OFFICE_OPEN):
            return self._indoor_office_path_loss(distance_3d, frequency_ghz, condition)

        raise ValueError(f"Unsupported scenario class: {scenario}")

    def _rural_macro_path_loss(self, distance_2d: float, distance_3d: float, h_bs: float,
                               h_ut: float, frequency_ghz: float, condition: ChannelCondition) -> float:
        """3GPP Rural Macro path loss model (38.901)."""
        h = 5.0  # average building height
        w = 20.0  # average street width

        def pl1(d):
            return (20 * math.log10(40 * math.pi * d * frequency_ghz / 3)
                    + min(0.03 * h**1.72, 10) * math.log10(d)
                    - min(0.044 * h**1.72, 14.77) + 0.002 * math.log10(h) * d)

        breakpoint = 2 * math.pi * h_bs * h_ut * frequency_ghz * 1e9 / SPEED_OF_LIGHT

        if distance_2d <= breakpoint:
            los = pl1(distance_3d)
        else:
            los = max(pl1(distance_3d), pl1(breakpoint) + 40 * math.log10(distance_3d / breakpoint))

        if condition == ChannelCondition.LOS:
            return los

        nlos = (161.04 - 7.1 * math.log10(w) + 7.5 * math.log10(h)
                - (24.37 - 3.7 * (h / h_bs)**2) * math.log10(h_bs)
                + (43.42 - 3.1 * math.log10(h_bs)) * (math.log10(distance_3d) - 3)
                + 20 * math.log10(frequency_ghz)
                - (3.2 * (math.log10(11.75 * h_ut))**2 - 4.97))
        return max(los, nlos)

    def _urban_macro_path_loss(self, distance_2d: float, distance_3d: float, h_bs: float,
                               h_ut: float, frequency_ghz: float, condition: ChannelCondition) -> float:
        """3GPP Urban Macro path loss model (38.901)."""
        # Effective heights with a 1 m environment height
        h_bs_eff = max(h_bs - 1.0, MIN_HEIGHT)
        h_ut_eff = max(h_ut - 1.0, MIN_HEIGHT)
        breakpoint = 4 * h_bs_eff * h_ut_eff * frequency_ghz * 1e9 / SPEED_OF_LIGHT

        if distance_2d <= breakpoint:
            los = 28.0 + 22 * math.log10(distance_3d) + 20 * math.log10(frequency_ghz)
        else:
            los = (28.0 + 40 * math.log10(distance_3d) + 20 * math.log10(frequency_ghz)
                   - 9 * math.log10(breakpoint**2 + (h_bs - h_ut)**2))

        if condition == ChannelCondition.LOS:
            return los

        nlos = (13.54 + 39.08 * math.log10(distance_3d) + 20 * math.log10(frequency_ghz)
                - 0.6 * (h_ut - 1.5))
        return max(los, nlos)

    def _urban_micro_path_loss(self, distance_2d: float, distance_3d: float, h_bs: float,
                               h_ut: float, frequency_ghz: float, condition: ChannelCondition) -> float:
        """3GPP Urban Micro street canyon path loss model (38.901)."""
        h_bs_eff = max(h_bs - 1.0, MIN_HEIGHT)
        h_ut_eff = max(h_ut - 1.0, MIN_HEIGHT)
        breakpoint = 4 * h_bs_eff * h_ut_eff * frequency_ghz * 1e9 / SPEED_OF_LIGHT

        if distance_2d <= breakpoint:
            los = 32.4 + 21 * math.log10(distance_3d) + 20 * math.log10(frequency_ghz)
        else:
            los = (32.4 + 40 * math.log10(distance_3d) + 20 * math.log10(frequency_ghz)
                   - 9.5 * math.log10(breakpoint**2 + (h_bs - h_ut)**2))

        if condition == ChannelCondition.LOS:
            return los

        nlos = (35.3 * math.log10(distance_3d) + 22.4 + 21.3 * math.log10(frequency_ghz)
                - 0.3 * (h_ut - 1.5))
        return max(los, nlos)

    def _indoor_office_path_loss(self, distance_3d: float, frequency_ghz: float,
                                 condition: ChannelCondition) -> float:
        """3GPP Indoor Office path loss model (38.901)."""
        los = 32.4 + 17.3 * math.log10(distance_3d) + 20 * math.log10(frequency_ghz)
        if condition == ChannelCondition.LOS:
            return los

        nlos = 38.3 * math.log10(distance_3d) + 17.30 + 24.9 * math.log10(frequency_ghz)
        return max(los, nlos)


class FreeSpaceChannelModel(PathLossChannelModel):
    """Friis free space path loss with a fixed excess loss for NLOS links"""

    def __init__(self, nlos_excess_loss_db: float = 20.0):
        self.nlos_excess_loss_db = nlos_excess_loss_db

    def calculate_path_loss(self, scenario: ScenarioClass, distance_2d: float, distance_3d: float,
                            h_bs: float, h_ut: float, frequency: float,
                            condition: ChannelCondition) -> float:
        path_loss = 20 * math.log10(4 * math.pi * distance_3d * frequency / SPEED_OF_LIGHT)
        if condition != ChannelCondition.LOS:
            path_loss += self.nlos_excess_loss_db
        return path_loss


CHANNEL_MODELS = {
    ChannelModelType.THREE_GPP: ThreeGppChannelModel,
    ChannelModelType.FREE_SPACE: FreeSpaceChannelModel,
}


def create_channel_model(config: ScenarioConfig,
                         model_type: Optional[ChannelModelType] = None) -> ChannelModel:
    """Instantiate the channel model selected by the configuration"""
    model_type = ChannelModelType.from_name(model_type or config.channel_model)
    return CHANNEL_MODELS[model_type]()
