#!/usr/bin/env python3
"""
Main simulation runner for the RAN simulation core.

This script runs a scenario from a configuration file or a predefined
scenario, with command line overrides for the usual scenario parameters.

Usage:
    python run_simulation.py --config scenarios/umi_buildings.json
    python run_simulation.py --scenario umi_buildings --mobility --speed 1.5
    python run_simulation.py --scenario three_ue_uplink_downlink --condition n --output results.json
    python run_simulation.py --help
"""

import argparse
import logging
import os
import sys
import traceback
from pathlib import Path
from typing import Any, Dict

from nrsim.core.errors import SimulationError
from nrsim.core.simulation_engine import SimulationEngine
from nrsim.utils.config_parser import ConfigParser

PRESETS = sorted(ConfigParser.get_scenario_configs())


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Discrete-event RAN simulation core',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --config scenarios/umi_buildings.json
  %(prog)s --scenario umi_buildings --scenario-class UMa --frequency 3.5e9
  %(prog)s --scenario three_ue_uplink_downlink --condition n --blockage
  %(prog)s --create-scenario umi_buildings --config-output scenarios/my_scenario.yaml
        """
    )

    # Main execution modes
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument('--config', '-c', type=str,
                       help='Configuration file path (JSON or YAML)')
    group.add_argument('--scenario', '-s', type=str, choices=PRESETS,
                       help='Use predefined scenario')
    group.add_argument('--create-scenario', type=str, choices=PRESETS,
                       help='Create a new scenario configuration file')

    # Scenario overrides
    parser.add_argument('--scenario-class', type=str,
                        help="Channel scenario: 'RMa', 'UMa', 'UMi-StreetCanyon', "
                             "'InH-OfficeMixed', 'InH-OfficeOpen' or 'UMi-Buildings'")
    parser.add_argument('--frequency', type=float, help='Central carrier frequency in Hz')
    parser.add_argument('--bandwidth', type=float, help='System bandwidth in Hz')
    parser.add_argument('--sim-time', type=float, help='Simulation time in seconds')
    parser.add_argument('--mobility', action='store_true',
                        help='Move the first terminal along the y axis')
    parser.add_argument('--speed', type=float, default=1.0,
                        help='Terminal speed in m/s when --mobility is set')
    parser.add_argument('--condition', type=str,
                        help='Channel condition: l = LOS, n = NLOS, probabilistic or buildings')
    parser.add_argument('--blockage', action='store_true', help='Enable blockage attenuation')
    parser.add_argument('--channel-model', type=str, help="'three_gpp' or 'free_space'")
    parser.add_argument('--handover-interval', type=float,
                        help='Re-evaluate attachments every N seconds')
    parser.add_argument('--seed', type=int, help='Random seed')

    # Output
    parser.add_argument('--output', '-o', type=str,
                        help='Output file for results (.json or .csv)')
    parser.add_argument('--results-dir', type=str, default='results',
                        help='Directory for results')
    parser.add_argument('--config-output', type=str,
                        help='Output path for created scenario (used with --create-scenario)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose output')

    return parser.parse_args(argv)


def build_overrides(args) -> Dict[str, Any]:
    """Turn command line overrides into a configuration dictionary fragment."""
    simulation = {}
    channel = {}

    if args.sim_time is not None:
        simulation['simulation_time'] = args.sim_time
    if args.seed is not None:
        simulation['random_seed'] = args.seed
    if args.handover_interval is not None:
        simulation['handover_interval'] = args.handover_interval
    if args.verbose:
        simulation['log_level'] = 'DEBUG'

    if args.scenario_class is not None:
        channel['scenario'] = args.scenario_class
    if args.frequency is not None:
        channel['frequency'] = args.frequency
    if args.bandwidth is not None:
        channel['bandwidth'] = args.bandwidth
    if args.condition is not None:
        channel['condition_policy'] = args.condition
    if args.blockage:
        channel['blockage'] = True
    if args.channel_model is not None:
        channel['channel_model'] = args.channel_model

    overrides = {}
    if simulation:
        overrides['simulation'] = simulation
    if channel:
        overrides['channel'] = channel
    return overrides


def apply_mobility(config_data: Dict[str, Any], speed: float) -> Dict[str, Any]:
    """Give the first terminal a constant velocity along the y axis."""
    terminals = [dict(t) for t in config_data.get('terminals', [])]
    if terminals:
        terminals[0]['velocity'] = [0.0, speed, 0.0]
        terminals[0]['mobility_model'] = 'constant_velocity'
    return {**config_data, 'terminals': terminals}


def load_scenario(args):
    """Build the validated ScenarioConfig from the file or preset plus overrides."""
    if args.config:
        config_data = ConfigParser.read_config_file(args.config)
    else:
        config_data = ConfigParser.get_scenario_configs()[args.scenario]

    config_data = ConfigParser.merge_configs(config_data, build_overrides(args))
    if args.mobility:
        config_data = apply_mobility(config_data, args.speed)
    return ConfigParser.validate_config(config_data)


def run_simulation_with_config(config, args) -> bool:
    """Run simulation with given configuration."""
    print("\n" + "=" * 60)
    print("RAN SIMULATION CORE")
    print("=" * 60)

    if args.verbose:
        print("Configuration:")
        print(f"  Scenario: {config.scenario.value}")
        print(f"  Simulation time: {config.simulation_time}s")
        print(f"  Base stations: {len(config.base_stations)}")
        print(f"  Terminals: {len(config.terminals)}")
        print(f"  Frequency: {config.frequency / 1e9:.2f} GHz")
        print(f"  Bandwidth: {config.bandwidth / 1e6:.1f} MHz")
        print(f"  Condition policy: {config.condition_policy.value}")
        print(f"  Blockage: {config.blockage}")
        print()

    try:
        engine = SimulationEngine(config)
        results = engine.run()

        print("\n" + "-" * 50)
        print("SIMULATION COMPLETED SUCCESSFULLY")
        print("-" * 50)

        stats = results.summary_statistics
        print(f"Packets delivered: {stats.get('total_packets', 0)}")
        print(f"Bytes delivered: {stats.get('total_bytes', 0)}")
        if stats.get('total_packets'):
            print(f"Offered throughput: {stats['offered_throughput_mbps']:.3f} Mbps")
            print(f"Deliveries between {stats['first_delivery']:.6f}s and {stats['last_delivery']:.6f}s")

        for terminal_id, cell_id in sorted(engine.get_current_state()['attachments'].items()):
            print(f"Terminal {terminal_id}: serving cell {cell_id}")

        ho_stats = results.handover_statistics
        print(f"Attachments: {ho_stats.get('total_attachments', 0)}, "
              f"handovers: {ho_stats.get('total_handovers', 0)}")
        print(f"Execution time: {results.execution_time:.2f} seconds")

        if args.output:
            output_path = os.path.join(args.results_dir, os.path.basename(args.output))
            engine.save_results(results, output_path)
            print(f"Results saved to: {output_path}")

        print("\n" + "=" * 60)
        return True

    except KeyboardInterrupt:
        print("\nSimulation interrupted by user")
        return False
    except SimulationError as e:
        print(f"Error running simulation: {e}")
        if args.verbose:
            traceback.print_exc()
        return False


def create_scenario_config(scenario: str, args) -> bool:
    """Create a new scenario configuration file."""
    output_file = args.config_output or f"scenarios/{scenario}.json"

    print(f"Creating {scenario} scenario configuration...")

    try:
        Path(output_file).parent.mkdir(parents=True, exist_ok=True)
        ConfigParser.save_config(ConfigParser.get_scenario_configs()[scenario], output_file)
        print(f"Configuration created: {output_file}")
        print("You can now modify this file and run it with:")
        print(f"  python run_simulation.py --config {output_file}")
        return True
    except IOError as e:
        print(f"Error creating configuration: {e}")
        return False


def main(argv=None):
    """Main entry point."""
    args = parse_arguments(argv)

    if args.create_scenario:
        sys.exit(0 if create_scenario_config(args.create_scenario, args) else 1)

    try:
        config = load_scenario(args)
    except Exception as e:
        print(f"Error loading configuration: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    Path(args.results_dir).mkdir(parents=True, exist_ok=True)
    success = run_simulation_with_config(config, args)
    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
