"""
Configuration Parser for the RAN Simulation

This module handles loading and validation of scenario configuration files
(JSON or YAML) and exposes the predefined scenarios.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import jsonschema
import yaml

from ..core.config import FlowConfig, NodeConfig, ScenarioConfig
from ..network.geometry import Building

logger = logging.getLogger(__name__)


_COORDINATES = {
    "type": "array",
    "items": {"type": "number"},
    "minItems": 2,
    "maxItems": 3
}

_NODE_SCHEMA = {
    "type": "object",
    "properties": {
        "position": _COORDINATES,
        "velocity": {"type": "array", "items": {"type": "number"}, "minItems": 3, "maxItems": 3},
        "mobility_model": {"type": "string"},
        "node_id": {"type": "integer", "minimum": 0},
        "antenna_height": {"type": "number", "minimum": 0}
    },
    "required": ["position"],
    "additionalProperties": False
}


class ConfigParser:
    """
    Configuration parser and validator for scenario parameters
    """

    # JSON Schema for configuration validation. Model names are plain strings
    # here; unknown names are rejected when the ScenarioConfig is built.
    CONFIG_SCHEMA = {
        "type": "object",
        "properties": {
            "simulation": {
                "type": "object",
                "properties": {
                    "simulation_time": {"type": "number", "exclusiveMinimum": 0},
                    "random_seed": {"type": "integer", "minimum": 0},
                    "log_level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR"]},
                    "mobility_update_interval": {"type": "number", "exclusiveMinimum": 0},
                    "handover_interval": {"type": ["number", "null"], "exclusiveMinimum": 0},
                    "auto_attach": {"type": "boolean"}
                },
                "required": ["simulation_time"],
                "additionalProperties": False
            },
            "channel": {
                "type": "object",
                "properties": {
                    "scenario": {"type": "string"},
                    "frequency": {"type": "number", "exclusiveMinimum": 0},
                    "bandwidth": {"type": "number", "exclusiveMinimum": 0},
                    "condition_policy": {"type": "string"},
                    "channel_model": {"type": "string"},
                    "blockage": {"type": "boolean"},
                    "blockage_loss_db": {"type": "number", "minimum": 0},
                    "tx_power": {"type": "number"},
                    "noise_figure": {"type": "number", "minimum": 0},
                    "shadowing": {"type": "boolean"}
                },
                "additionalProperties": False
            },
            "network": {
                "type": "object",
                "properties": {
                    "base_stations": {"type": "array", "items": _NODE_SCHEMA, "minItems": 1},
                    "buildings": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "x_min": {"type": "number"},
                                "x_max": {"type": "number"},
                                "y_min": {"type": "number"},
                                "y_max": {"type": "number"},
                                "z_min": {"type": "number"},
                                "z_max": {"type": "number"}
                            },
                            "required": ["x_min", "x_max", "y_min", "y_max"],
                            "additionalProperties": False
                        }
                    },
                    "use_remote_host": {"type": "boolean"}
                },
                "required": ["base_stations"],
                "additionalProperties": False
            },
            "terminals": {"type": "array", "items": _NODE_SCHEMA, "minItems": 1},
            "traffic": {
                "type": "object",
                "properties": {
                    "flows": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "terminal": {"type": "integer", "minimum": 0},
                                "direction": {"type": "string"},
                                "interval": {"type": "number", "exclusiveMinimum": 0},
                                "packet_size": {"type": "integer", "minimum": 1},
                                "max_packets": {"type": ["integer", "null"], "minimum": 0},
                                "start_time": {"type": "number", "minimum": 0},
                                "stop_time": {"type": ["number", "null"]},
                                "flow_id": {"type": "integer", "minimum": 0}
                            },
                            "required": ["terminal"],
                            "additionalProperties": False
                        }
                    }
                },
                "additionalProperties": False
            }
        },
        "required": ["simulation", "network", "terminals"],
        "additionalProperties": False
    }

    @classmethod
    def load_config(cls, config_path: str) -> ScenarioConfig:
        """
        Load configuration from a JSON or YAML file

        Args:
            config_path: Path to configuration file

        Returns:
            Validated ScenarioConfig object

        Raises:
            FileNotFoundError: If config file doesn't exist
            json.JSONDecodeError: If JSON is invalid
            yaml.YAMLError: If YAML is invalid
            jsonschema.ValidationError: If config doesn't match schema
            ConfigurationError: If a value is rejected by the scenario checks
        """
        config = cls.validate_config(cls.read_config_file(config_path))
        logger.info("Configuration loaded and validated successfully")
        return config

    @classmethod
    def read_config_file(cls, config_path: str) -> Dict[str, Any]:
        """Read a JSON or YAML configuration file into a dictionary, unvalidated"""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        logger.info(f"Loading configuration from {config_path}")

        try:
            with open(config_file, 'r') as f:
                if config_file.suffix.lower() in ['.yaml', '.yml']:
                    return yaml.safe_load(f)
                return json.load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            logger.error(f"Invalid configuration file {config_path}: {e}")
            raise

    @classmethod
    def validate_config(cls, config_data: Dict[str, Any]) -> ScenarioConfig:
        """Validate a configuration dictionary and convert it to a ScenarioConfig"""
        try:
            jsonschema.validate(config_data, cls.CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            logger.error(f"Configuration validation error: {e.message}")
            raise

        config = cls._dict_to_config(config_data)
        config.validate()
        return config

    @classmethod
    def _dict_to_config(cls, config_data: Dict[str, Any]) -> ScenarioConfig:
        """Convert configuration dictionary to ScenarioConfig object"""

        # Extract sections with defaults
        sim_config = config_data.get('simulation', {})
        channel_config = config_data.get('channel', {})
        net_config = config_data.get('network', {})
        traffic_config = config_data.get('traffic', {})
        defaults = ScenarioConfig()

        def node(entry: Dict[str, Any]) -> NodeConfig:
            return NodeConfig(
                position=tuple(entry['position']),
                velocity=tuple(entry.get('velocity', (0.0, 0.0, 0.0))),
                mobility_model=entry.get('mobility_model'),
                node_id=entry.get('node_id'),
                antenna_height=entry.get('antenna_height')
            )

        config = ScenarioConfig(
            # Channel parameters
            scenario=channel_config.get('scenario', defaults.scenario),
            frequency=channel_config.get('frequency', defaults.frequency),
            bandwidth=channel_config.get('bandwidth', defaults.bandwidth),
            condition_policy=channel_config.get('condition_policy', defaults.condition_policy),
            channel_model=channel_config.get('channel_model', defaults.channel_model),
            blockage=channel_config.get('blockage', defaults.blockage),
            blockage_loss_db=channel_config.get('blockage_loss_db', defaults.blockage_loss_db),
            tx_power=channel_config.get('tx_power', defaults.tx_power),
            noise_figure=channel_config.get('noise_figure', defaults.noise_figure),
            shadowing=channel_config.get('shadowing', defaults.shadowing),

            # Simulation parameters
            simulation_time=sim_config.get('simulation_time', defaults.simulation_time),
            random_seed=sim_config.get('random_seed', defaults.random_seed),
            log_level=sim_config.get('log_level', defaults.log_level),
            mobility_update_interval=sim_config.get('mobility_update_interval',
                                                    defaults.mobility_update_interval),
            handover_interval=sim_config.get('handover_interval', defaults.handover_interval),
            auto_attach=sim_config.get('auto_attach', defaults.auto_attach),

            # Topology and traffic
            base_stations=tuple(node(entry) for entry in net_config.get('base_stations', [])),
            terminals=tuple(node(entry) for entry in config_data.get('terminals', [])),
            buildings=tuple(Building(**entry) for entry in net_config.get('buildings', [])),
            use_remote_host=net_config.get('use_remote_host', defaults.use_remote_host),
            flows=tuple(FlowConfig(**entry) for entry in traffic_config.get('flows', []))
        )

        return config

    @classmethod
    def save_config(cls, config_data: Dict[str, Any], output_path: str):
        """Write a configuration dictionary as JSON or YAML, chosen by extension"""
        path = Path(output_path)
        with open(path, 'w') as f:
            if path.suffix.lower() in ['.yaml', '.yml']:
                yaml.dump(config_data, f, default_flow_style=False, indent=2, sort_keys=False)
            else:
                json.dump(config_data, f, indent=2)

    @classmethod
    def create_default_config(cls, output_path: str = "config_template.json"):
        """Create a default configuration file template"""
        default_config = cls.get_scenario_configs()['umi_buildings']

        try:
            cls.save_config(default_config, output_path)
            logger.info(f"Default configuration template created: {output_path}")
        except IOError as e:
            logger.error(f"Failed to create configuration template: {e}")
            raise

    @classmethod
    def validate_config_file(cls, config_path: str) -> bool:
        """
        Validate configuration file without running it

        Args:
            config_path: Path to configuration file

        Returns:
            True if valid, False otherwise
        """
        try:
            cls.load_config(config_path)
            return True
        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            return False

    @classmethod
    def get_scenario_configs(cls) -> Dict[str, Dict]:
        """Get predefined scenario configurations"""

        scenarios = {
            # Two gNBs, two UEs and one small building, 10 downlink packets per UE
            "umi_buildings": {
                "simulation": {
                    "simulation_time": 1.0,
                    "random_seed": 1,
                    "log_level": "INFO"
                },
                "channel": {
                    "scenario": "UMi-Buildings",
                    "frequency": 28e9,
                    "bandwidth": 100e6,
                    "condition_policy": "buildings",
                    "tx_power": 40.0
                },
                "network": {
                    "base_stations": [
                        {"position": [0.0, 0.0]},
                        {"position": [0.0, 10.0]}
                    ],
                    "buildings": [
                        {"x_min": 10.0, "x_max": 12.0, "y_min": 10.0, "y_max": 20.0, "z_min": 0.0, "z_max": 1.0}
                    ]
                },
                "terminals": [
                    {"position": [90.0, 15.0], "mobility_model": "constant_velocity"},
                    {"position": [0.0, 0.0], "mobility_model": "constant_velocity"}
                ],
                "traffic": {
                    "flows": [
                        {"terminal": 2, "direction": "downlink", "interval": 1e-6, "packet_size": 1500,
                         "max_packets": 10, "start_time": 0.4, "stop_time": 0.8},
                        {"terminal": 3, "direction": "downlink", "interval": 1e-6, "packet_size": 1500,
                         "max_packets": 10, "start_time": 0.4, "stop_time": 0.8}
                    ]
                }
            },

            # One gNB serving three static UEs with uplink and downlink every 10 ms
            "three_ue_uplink_downlink": {
                "simulation": {
                    "simulation_time": 1.0,
                    "random_seed": 1,
                    "log_level": "INFO"
                },
                "channel": {
                    "scenario": "UMa",
                    "frequency": 100e9,
                    "bandwidth": 200e6,
                    "condition_policy": "los",
                    "blockage": False
                },
                "network": {
                    "base_stations": [
                        {"position": [250.0, 250.0, 1.6]}
                    ]
                },
                "terminals": [
                    {"position": [250.23037587, 299.99946927, 1.6]},
                    {"position": [212.67793643, 216.72743516, 1.6]},
                    {"position": [299.80260502, 245.5614717, 1.6]}
                ],
                "traffic": {
                    "flows": [
                        {"terminal": terminal, "direction": direction, "interval": 0.010,
                         "packet_size": 1024, "max_packets": 1000000, "start_time": 0.01}
                        for terminal in (1, 2, 3) for direction in ("downlink", "uplink")
                    ]
                }
            }
        }

        return scenarios

    @classmethod
    def get_scenario(cls, name: str) -> ScenarioConfig:
        """Build the ScenarioConfig of a predefined scenario"""
        scenarios = cls.get_scenario_configs()
        if name not in scenarios:
            raise KeyError(f"Unknown scenario '{name}'. Choose among {', '.join(sorted(scenarios))}.")
        return cls.validate_config(scenarios[name])

    @classmethod
    def create_scenario_configs(cls, output_dir: str = "scenarios") -> List[Path]:
        """Create all predefined scenario configuration files"""
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        created = []
        for scenario_name, config in cls.get_scenario_configs().items():
            config_file = output_path / f"{scenario_name}.json"

            try:
                cls.save_config(config, str(config_file))
                created.append(config_file)
                logger.info(f"Created scenario config: {config_file}")
            except IOError as e:
                logger.error(f"Failed to create scenario {scenario_name}: {e}")
        return created

    @classmethod
    def merge_configs(cls, base_config: Dict, override_config: Dict) -> Dict:
        """
        Merge two configuration dictionaries

        Args:
            base_config: Base configuration
            override_config: Override values

        Returns:
            Merged configuration
        """
        def deep_merge(base: Dict, override: Dict) -> Dict:
            result = copy.deepcopy(base)

            for key, value in override.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = deep_merge(result[key], value)
                else:
                    result[key] = value

            return result

        return deep_merge(base_config, override_config)
