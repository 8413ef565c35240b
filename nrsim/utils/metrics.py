"""
Metrics Collection for the RAN Simulation

This module collects packet deliveries and attachment changes while the
simulation runs and turns them into pandas DataFrames and summary
statistics once it completes.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..network.attachment import AttachmentEvent
from ..traffic.sink import TraceRecord

logger = logging.getLogger(__name__)


@dataclass
class SimulationResults:
    """Container for simulation results."""
    trace_data: pd.DataFrame
    attachment_history: pd.DataFrame
    summary_statistics: Dict[str, Any]
    terminal_statistics: Dict[int, Dict[str, Any]]
    cell_statistics: Dict[int, Dict[str, Any]]
    flow_statistics: Dict[int, Dict[str, Any]]
    handover_statistics: Dict[str, Any]
    final_positions: Dict[int, Tuple[float, float, float]] = field(default_factory=dict)
    execution_time: float = 0.0
    config: Optional[Any] = None


class MetricsCollector:
    """Collects and analyzes simulation metrics."""

    def __init__(self):
        self.deliveries: List[TraceRecord] = []
        self.attachment_events: List[AttachmentEvent] = []

        logger.info("Metrics Collector initialized")

    def record_delivery(self, record: TraceRecord):
        """Trace callback for delivered packets"""
        self.deliveries.append(record)

    def record_attachment(self, event: AttachmentEvent):
        """Trace callback for attachment changes"""
        self.attachment_events.append(event)

    def generate_results(self, flow_summaries: List[Dict[str, Any]],
                         final_positions: Dict[int, Tuple[float, float, float]],
                         simulation_time: float) -> SimulationResults:
        """Generate simulation results from the collected events."""
        trace_df = self._create_trace_dataframe()
        attachment_df = self._create_attachment_dataframe()

        return SimulationResults(
            trace_data=trace_df,
            attachment_history=attachment_df,
            summary_statistics=self._calculate_summary_statistics(trace_df, simulation_time, len(flow_summaries)),
            terminal_statistics=self._calculate_terminal_statistics(trace_df, simulation_time),
            cell_statistics=self._calculate_cell_statistics(trace_df, attachment_df),
            flow_statistics=self._calculate_flow_statistics(trace_df, flow_summaries, simulation_time),
            handover_statistics=self._calculate_handover_statistics(attachment_df),
            final_positions=final_positions
        )

    def _create_trace_dataframe(self) -> pd.DataFrame:
        columns = list(TraceRecord.__dataclass_fields__)
        return pd.DataFrame([asdict(r) for r in self.deliveries], columns=columns)

    def _create_attachment_dataframe(self) -> pd.DataFrame:
        columns = list(AttachmentEvent.__dataclass_fields__) + ['is_handover']
        rows = [{**asdict(e), 'is_handover': e.is_handover} for e in self.attachment_events]
        return pd.DataFrame(rows, columns=columns)

    def _calculate_summary_statistics(self, df: pd.DataFrame, simulation_time: float,
                                      total_flows: int) -> Dict[str, Any]:
        """Calculate summary statistics."""
        if df.empty:
            return {
                'simulation_duration': simulation_time,
                'total_packets': 0,
                'total_bytes': 0,
                'total_flows': total_flows,
                'unique_terminals': 0,
                'unique_cells': 0
            }

        total_bytes = int(df['packet_size'].sum())
        return {
            'simulation_duration': simulation_time,
            'total_packets': len(df),
            'total_bytes': total_bytes,
            'total_flows': total_flows,
            'unique_terminals': int(df['imsi'].nunique()),
            'unique_cells': int(df['cell_id'].nunique()),
            'first_delivery': float(df['time'].min()),
            'last_delivery': float(df['time'].max()),
            'offered_throughput_mbps': total_bytes * 8 / simulation_time / 1e6,
            'average_link_quality_db': self._mean_quality(df)
        }

    def _calculate_terminal_statistics(self, df: pd.DataFrame,
                                       simulation_time: float) -> Dict[int, Dict[str, Any]]:
        """Calculate per-terminal statistics."""
        terminal_stats = {}
        for imsi, data in df.groupby('imsi'):
            terminal_stats[int(imsi)] = {
                'packets': len(data),
                'bytes': int(data['packet_size'].sum()),
                'downlink_packets': int((data['direction'] == 'downlink').sum()),
                'uplink_packets': int((data['direction'] == 'uplink').sum()),
                'cells': sorted(int(c) for c in data['cell_id'].unique()),
                'offered_throughput_mbps': data['packet_size'].sum() * 8 / simulation_time / 1e6,
                'average_link_quality_db': self._mean_quality(data)
            }
        return terminal_stats

    def _calculate_cell_statistics(self, df: pd.DataFrame,
                                   attachment_df: pd.DataFrame) -> Dict[int, Dict[str, Any]]:
        """Calculate per-cell statistics."""
        cell_stats = {}
        cells = set(df['cell_id'].dropna().astype(int)) | set(attachment_df['target_cell_id'].dropna().astype(int))
        for cell_id in sorted(cells):
            data = df[df['cell_id'] == cell_id]
            cell_stats[cell_id] = {
                'packets': len(data),
                'bytes': int(data['packet_size'].sum()) if not data.empty else 0,
                'served_terminals': int(data['imsi'].nunique()) if not data.empty else 0,
                'attachments_in': int((attachment_df['target_cell_id'] == cell_id).sum()),
                'handovers_out': int(((attachment_df['source_cell_id'] == cell_id) &
                                      attachment_df['is_handover'].astype(bool)).sum())
            }
        return cell_stats

    def _calculate_flow_statistics(self, df: pd.DataFrame, flow_summaries: List[Dict[str, Any]],
                                   simulation_time: float) -> Dict[int, Dict[str, Any]]:
        """Calculate per-flow statistics."""
        flow_stats = {}
        for summary in flow_summaries:
            data = df[df['flow_id'] == summary['flow_id']]
            stats = dict(summary)
            stats.update({
                'packets_delivered': len(data),
                'first_delivery': float(data['time'].min()) if not data.empty else None,
                'last_delivery': float(data['time'].max()) if not data.empty else None,
                'offered_throughput_mbps': (data['packet_size'].sum() * 8 / simulation_time / 1e6
                                            if not data.empty else 0.0)
            })
            flow_stats[summary['flow_id']] = stats
        return flow_stats

    def _calculate_handover_statistics(self, attachment_df: pd.DataFrame) -> Dict[str, Any]:
        """Calculate handover statistics."""
        if attachment_df.empty:
            return {'total_attachments': 0, 'total_handovers': 0, 'total_detachments': 0}

        handovers = attachment_df[attachment_df['is_handover'].astype(bool)]
        return {
            'total_attachments': int(attachment_df['source_cell_id'].isna().sum()),
            'total_handovers': len(handovers),
            'total_detachments': int(attachment_df['target_cell_id'].isna().sum()),
            'handovers_per_terminal': {int(k): int(v) for k, v in handovers.groupby('terminal_id').size().items()}
        }

    @staticmethod
    def _mean_quality(df: pd.DataFrame) -> Optional[float]:
        qualities = df['link_quality'].dropna()
        return float(np.mean(qualities)) if not qualities.empty else None

    def export_results(self, results: SimulationResults, output_file: str):
        """Export results to file."""
        if output_file.endswith('.json'):
            self._export_json(results, output_file)
        elif output_file.endswith('.csv'):
            self._export_csv(results, output_file)
        else:
            raise ValueError(f"Unsupported file format: {output_file}")
        logger.info(f"Results exported to {output_file}")

    def _export_json(self, results: SimulationResults, filename: str):
        """Export results to JSON."""
        export_data = {
            'summary_statistics': results.summary_statistics,
            'terminal_statistics': results.terminal_statistics,
            'cell_statistics': results.cell_statistics,
            'flow_statistics': results.flow_statistics,
            'handover_statistics': results.handover_statistics,
            'final_positions': results.final_positions,
            'trace': results.trace_data.to_dict(orient='records'),
            'execution_time': results.execution_time
        }

        with open(filename, 'w') as f:
            json.dump(export_data, f, indent=2, default=str)

    def _export_csv(self, results: SimulationResults, filename: str):
        """Export the delivery trace to CSV."""
        results.trace_data.to_csv(filename, index=False)

    def export_to_csv(self, results: SimulationResults, output_dir: str = "results"):
        """Export every table to CSV files in a directory"""
        os.makedirs(output_dir, exist_ok=True)

        results.trace_data.to_csv(os.path.join(output_dir, "trace.csv"), index=False)
        results.attachment_history.to_csv(os.path.join(output_dir, "attachments.csv"), index=False)

        if results.flow_statistics:
            flow_df = pd.DataFrame(list(results.flow_statistics.values()))
            flow_df.to_csv(os.path.join(output_dir, "flows.csv"), index=False)

        if results.final_positions:
            position_df = pd.DataFrame(
                [(node_id, *pos) for node_id, pos in results.final_positions.items()],
                columns=['node_id', 'x', 'y', 'z'])
            position_df.to_csv(os.path.join(output_dir, "positions.csv"), index=False)

        logger.info(f"Metrics exported to {output_dir}/")

    def reset(self):
        """Reset all collected metrics"""
        self.deliveries.clear()
        self.attachment_events.clear()
