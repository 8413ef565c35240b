"""
Link evaluation between base stations and terminals.
"""

import logging
from dataclasses import dataclass

from ..core.config import ScenarioConfig
from ..core.random_streams import RandomStreams
from ..core.scheduler import Scheduler
from .channel import ChannelCondition, ChannelModel, LinkEndpoint
from .topology import TopologyStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Link:
    """Evaluated link between a base station and a terminal"""
    base_station_id: int
    terminal_id: int
    condition: ChannelCondition
    quality: float  # dB
    evaluated_at: float  # seconds


class LinkEvaluator:
    """
    Evaluates links on current positions with the configured channel model.

    Each evaluation of a (base station, terminal) pair draws from its own
    generator, keyed by the pair and the number of previous evaluations of
    that pair.
    """

    def __init__(self, topology: TopologyStore, channel_model: ChannelModel,
                 config: ScenarioConfig, scheduler: Scheduler, random_streams: RandomStreams):
        self.topology = topology
        self.channel_model = channel_model
        self.config = config
        self.scheduler = scheduler
        self.random_streams = random_streams
        self.evaluations = 0

    def evaluate(self, base_station_id: int, terminal_id: int) -> Link:
        """Evaluate the link between a base station and a terminal at the current time"""
        now = self.scheduler.now()
        base_station = LinkEndpoint.from_node(self.topology.get(base_station_id), now)
        terminal = LinkEndpoint.from_node(self.topology.get(terminal_id), now)
        rng = self.random_streams.next_generator(base_station_id, terminal_id)

        state = self.channel_model.evaluate_link(base_station, terminal, self.config, rng)
        self.evaluations += 1

        logger.debug(f"Link BS {base_station_id} <-> terminal {terminal_id} at {now:.6f}s: "
                     f"{state.condition.name}, {state.quality:.2f} dB")
        return Link(base_station_id, terminal_id, state.condition, state.quality, now)
