"""
Trace sink collecting packet delivery records.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Callable, Iterator, List, Optional, Tuple

import pandas as pd

from ..core.trace import TraceSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraceRecord:
    """One delivered packet"""
    time: float  # seconds
    imsi: int  # terminal node id
    cell_id: int
    rnti: int
    packet_size: int  # bytes
    flow_id: Optional[int] = None
    direction: Optional[str] = None
    link_quality: Optional[float] = None  # dB at delivery


class TraceSink:
    """
    Append-only, ordered sequence of delivery records.

    Callbacks connected to the sink are invoked once per record, in arrival
    order, so incremental consumers see the same sequence as `records`.
    """

    def __init__(self):
        self._records: List[TraceRecord] = []
        self.packet_delivered = TraceSource("packet_delivered")

    def record(self, record: TraceRecord):
        self._records.append(record)
        self.packet_delivered(record)

    @property
    def records(self) -> Tuple[TraceRecord, ...]:
        """Read-only view of the delivered packets in arrival order"""
        return tuple(self._records)

    def connect(self, callback: Callable[[TraceRecord], None]):
        self.packet_delivered.connect(callback)

    def disconnect(self, callback: Callable[[TraceRecord], None]):
        self.packet_delivered.disconnect(callback)

    def __iter__(self) -> Iterator[TraceRecord]:
        return iter(tuple(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def to_dataframe(self) -> pd.DataFrame:
        """Records as a DataFrame, one row per delivered packet"""
        columns = list(TraceRecord.__dataclass_fields__)
        return pd.DataFrame([asdict(r) for r in self._records], columns=columns)

    def clear(self):
        logger.debug(f"Clearing {len(self._records)} trace records")
        self._records.clear()
