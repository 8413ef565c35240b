"""
Attachment Management for the RAN Simulation

This module keeps the serving base station of every terminal, selects the
best cell from link quality and optionally re-evaluates the choice
periodically (handover).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..core.config import NodeRole
from ..core.errors import NoCandidateError, NodeRoleError, SchedulingError
from ..core.scheduler import EventHandle, Scheduler
from ..core.trace import TraceSource
from .link import Link, LinkEvaluator
from .topology import TopologyStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    """Active attachment of a terminal to a cell"""
    terminal_id: int
    cell_id: int
    rnti: int
    attached_at: float
    quality: Optional[float] = None  # dB at selection time


@dataclass(frozen=True)
class AttachmentEvent:
    """Attachment history record"""
    timestamp: float
    terminal_id: int
    source_cell_id: Optional[int]  # None when the terminal was unattached
    target_cell_id: Optional[int]  # None on detach
    rnti: Optional[int]

    @property
    def is_handover(self) -> bool:
        return self.source_cell_id is not None and self.target_cell_id is not None


class AttachmentManager:
    """
    Attachment state of every terminal

    A terminal is either unattached or attached to exactly one cell. The
    state changes only through attach, attach_closest, detach or the
    periodic re-evaluation.
    """

    def __init__(self, scheduler: Scheduler, topology: TopologyStore, link_evaluator: LinkEvaluator):
        self.scheduler = scheduler
        self.topology = topology
        self.link_evaluator = link_evaluator

        self._attachments: Dict[int, Attachment] = {}
        self._next_rnti: Dict[int, int] = {}
        self.history: List[AttachmentEvent] = []
        self.attachment_changed = TraceSource("attachment_changed")
        self._reevaluation_event: Optional[EventHandle] = None
        self.reevaluation_interval: Optional[float] = None

        # Statistics
        self.stats = {
            'attachments': 0,
            'handovers': 0,
            'detachments': 0,
            'evaluations': 0
        }

        logger.info("Attachment Manager initialized")

    def attach_closest(self, terminals: Optional[Iterable[int]] = None,
                       base_stations: Optional[Iterable[int]] = None) -> Dict[int, int]:
        """
        Attach each terminal to the base station with the best link.

        Args:
            terminals: Terminal ids, all terminals when None
            base_stations: Candidate base station ids, all base stations when None

        Returns:
            Mapping terminal id -> serving cell id after the selection

        Raises:
            NoCandidateError: If the candidate set is empty
            UnknownNodeError: If any id is not in the topology
            NodeRoleError: If any id has the wrong role

        Every id is checked before the first attachment changes.
        """
        if terminals is None:
            terminals = [node.node_id for node in self.topology.terminals()]
        if base_stations is None:
            base_stations = [node.node_id for node in self.topology.base_stations()]
        terminals = list(terminals)

        candidates = sorted(set(base_stations))
        if not candidates:
            raise NoCandidateError("No base station available for attachment")
        for cell_id in candidates:
            self._check_role(cell_id, NodeRole.BASE_STATION)
        for terminal_id in terminals:
            self._check_role(terminal_id, NodeRole.TERMINAL)

        self.stats['evaluations'] += 1
        selections = [self.select_best(terminal_id, candidates) for terminal_id in terminals]

        result = {}
        for terminal_id, best in zip(terminals, selections):
            self.attach(terminal_id, best.base_station_id, quality=best.quality)
            result[terminal_id] = best.base_station_id
        return result

    def _check_role(self, node_id: int, role: NodeRole):
        node = self.topology.get(node_id)
        if node.role != role:
            raise NodeRoleError(f"Node {node_id} is a {node.role.value}, expected a {role.value}")

    def select_best(self, terminal_id: int, candidates: List[int]) -> Link:
        """Best link among candidates, ties go to the lowest base station id"""
        best: Optional[Link] = None
        for cell_id in sorted(candidates):
            link = self.link_evaluator.evaluate(cell_id, terminal_id)
            if best is None or link.quality > best.quality:
                best = link
        if best is None:
            raise NoCandidateError(f"No base station available for terminal {terminal_id}")
        return best

    def attach(self, terminal_id: int, cell_id: int, quality: Optional[float] = None) -> Attachment:
        """
        Attach a terminal to a cell.

        Re-attaching to the current serving cell keeps the attachment.

        Raises:
            UnknownNodeError: If either id is not in the topology
            NodeRoleError: If terminal_id is not a terminal or cell_id not a base station
        """
        self._check_role(terminal_id, NodeRole.TERMINAL)
        self._check_role(cell_id, NodeRole.BASE_STATION)

        current = self._attachments.get(terminal_id)
        if current is not None and current.cell_id == cell_id:
            return current

        now = self.scheduler.now()
        rnti = self._allocate_rnti(cell_id)
        attachment = Attachment(terminal_id, cell_id, rnti, now, quality)
        self._attachments[terminal_id] = attachment

        source = current.cell_id if current is not None else None
        event = AttachmentEvent(now, terminal_id, source, cell_id, rnti)
        self.history.append(event)

        if event.is_handover:
            self.stats['handovers'] += 1
            logger.info(f"Handover of terminal {terminal_id} at {now:.3f}s: cell {source} -> {cell_id} (RNTI {rnti})")
        else:
            self.stats['attachments'] += 1
            logger.info(f"Terminal {terminal_id} attached to cell {cell_id} with RNTI {rnti} at {now:.3f}s")

        self.attachment_changed(event)
        return attachment

    def detach(self, terminal_id: int):
        """Return a terminal to the unattached state. No-op if it is not attached."""
        current = self._attachments.pop(terminal_id, None)
        if current is None:
            return
        event = AttachmentEvent(self.scheduler.now(), terminal_id, current.cell_id, None, None)
        self.history.append(event)
        self.stats['detachments'] += 1
        logger.info(f"Terminal {terminal_id} detached from cell {current.cell_id}")
        self.attachment_changed(event)

    def _allocate_rnti(self, cell_id: int) -> int:
        rnti = self._next_rnti.get(cell_id, 1)
        self._next_rnti[cell_id] = rnti + 1
        return rnti

    def serving_cell(self, terminal_id: int) -> Optional[int]:
        attachment = self._attachments.get(terminal_id)
        return attachment.cell_id if attachment is not None else None

    def get_attachment(self, terminal_id: int) -> Optional[Attachment]:
        return self._attachments.get(terminal_id)

    def is_attached(self, terminal_id: int) -> bool:
        return terminal_id in self._attachments

    def attachments(self) -> Dict[int, Attachment]:
        """Snapshot of the active attachments keyed by terminal id"""
        return dict(sorted(self._attachments.items()))

    def start_periodic_reevaluation(self, interval: float):
        """Re-run attach_closest for attached terminals every interval seconds"""
        if not interval > 0:
            raise SchedulingError(f"Re-evaluation interval must be positive, got {interval}")
        self.stop_periodic_reevaluation()
        self.reevaluation_interval = interval
        self._reevaluation_event = self.scheduler.schedule(interval, self._reevaluate)
        logger.info(f"Periodic attachment re-evaluation every {interval}s")

    def stop_periodic_reevaluation(self):
        self.scheduler.cancel(self._reevaluation_event)
        self._reevaluation_event = None

    def _reevaluate(self):
        attached = sorted(self._attachments)
        if attached:
            self.attach_closest(terminals=attached)
        self._reevaluation_event = self.scheduler.schedule(self.reevaluation_interval, self._reevaluate)

    def get_statistics(self) -> Dict[str, int]:
        return {
            **self.stats,
            'attached_terminals': len(self._attachments),
            'unattached_terminals': len(self.topology.terminals()) - len(self._attachments)
        }
