#!/usr/bin/env python3
"""
Basic RAN Simulation Example

Two base stations, one walking terminal and one downlink flow, with the
delivery trace consumed both incrementally and after the run.
"""

import logging

from nrsim.core.config import FlowConfig, NodeConfig, ScenarioConfig
from nrsim.core.simulation_engine import SimulationEngine
from nrsim.network.geometry import Building


def main():
    """Run basic simulation example"""

    # Setup logging
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger(__name__)

    logger.info("Starting basic RAN simulation example")

    # Create configuration
    config = ScenarioConfig(
        scenario="UMi-StreetCanyon",
        frequency=28e9,
        bandwidth=100e6,
        condition_policy="buildings",
        blockage=True,
        simulation_time=2.0,
        random_seed=42,
        handover_interval=0.5,
        base_stations=(
            NodeConfig(position=(0.0, 0.0)),
            NodeConfig(position=(200.0, 0.0)),
        ),
        terminals=(
            NodeConfig(position=(60.0, 20.0), velocity=(20.0, 0.0, 0.0)),
        ),
        buildings=(Building(x_min=90.0, x_max=110.0, y_min=5.0, y_max=15.0, z_max=30.0),),
        flows=(
            FlowConfig(terminal=2, direction="downlink", interval=0.010, packet_size=1500, start_time=0.1),
        )
    )

    engine = SimulationEngine(config)

    # Incremental consumer: count deliveries per cell while the run progresses
    per_cell = {}
    engine.sink.connect(lambda record: per_cell.update({record.cell_id: per_cell.get(record.cell_id, 0) + 1}))
    engine.attachment_manager.attachment_changed.connect(
        lambda event: logger.info(f"  t={event.timestamp:.2f}s terminal {event.terminal_id}: "
                                  f"{event.source_cell_id} -> {event.target_cell_id}"))

    results = engine.run()

    # Print results summary
    stats = results.summary_statistics
    logger.info("Simulation Results:")
    logger.info(f"  Duration: {config.simulation_time} seconds")
    logger.info(f"  Packets delivered: {stats['total_packets']}")
    logger.info(f"  Deliveries per cell: {per_cell}")
    logger.info(f"  Handovers: {results.handover_statistics['total_handovers']}")
    logger.info(f"  Final terminal position: {results.final_positions[2]}")

    # Save results
    engine.save_results(results, "basic_simulation_results.json")
    engine.metrics.export_to_csv(results, "examples/results")

    logger.info("Basic simulation example completed successfully!")


if __name__ == "__main__":
    main()
