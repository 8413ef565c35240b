"""
Tests for traffic generation and the trace sink.
"""

import unittest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nrsim.core.config import FlowConfig, NodeConfig, ScenarioConfig
from nrsim.core.errors import ConfigurationError, SimulationError, UnknownFlowError
from nrsim.core.simulation_engine import SimulationEngine
from nrsim.traffic.flows import FlowState
from nrsim.traffic.sink import TraceRecord, TraceSink


def single_cell_config(flows, **kwargs):
    """One base station (id 0), one terminal (id 1), remote host id 2."""
    return ScenarioConfig(
        condition_policy='los',
        base_stations=(NodeConfig(position=(0.0, 0.0)),),
        terminals=(NodeConfig(position=(50.0, 0.0)),),
        flows=tuple(flows),
        **kwargs
    )


class TestTrafficGenerator(unittest.TestCase):
    """Test TrafficGenerator functionality."""

    def test_ten_packets_from_attached_terminal(self):
        """interval 1 ms, 10 packets, start 0.4 s, stop 1.0 s: records at 0.400 ... 0.409 s."""
        config = single_cell_config([
            FlowConfig(terminal=1, interval=0.001, max_packets=10, start_time=0.4, stop_time=1.0)
        ], simulation_time=1.0)
        engine = SimulationEngine(config)

        engine.run()

        records = engine.sink.records
        self.assertEqual(len(records), 10)
        for k, record in enumerate(records):
            self.assertAlmostEqual(record.time, 0.4 + k * 0.001, places=9)
            self.assertEqual(record.imsi, 1)
            self.assertEqual(record.cell_id, 0)
            self.assertEqual(record.rnti, 1)
            self.assertEqual(record.packet_size, 1500)
            self.assertEqual(record.direction, 'downlink')
            self.assertIsNotNone(record.link_quality)
        self.assertEqual(engine.traffic_generator.get_flow(0).state, FlowState.COMPLETED)

    def test_unattached_terminal_sends_nothing(self):
        """The same flow with the terminal left unattached produces no record."""
        config = single_cell_config([
            FlowConfig(terminal=1, interval=0.001, max_packets=10, start_time=0.4, stop_time=1.0)
        ], simulation_time=1.0, auto_attach=False)
        engine = SimulationEngine(config)

        with self.assertLogs('nrsim.core.simulation_engine', level='WARNING'):
            engine.run()

        self.assertEqual(len(engine.sink), 0)
        flow = engine.traffic_generator.get_flow(0)
        self.assertEqual(flow.state, FlowState.SUSPENDED)
        self.assertEqual(flow.packets_sent, 0)
        self.assertEqual(flow.suspensions, 1)

    def test_no_packet_at_or_after_stop(self):
        config = single_cell_config([
            FlowConfig(terminal=1, interval=0.1, start_time=0.0, stop_time=0.5)
        ], simulation_time=1.0)
        engine = SimulationEngine(config)

        engine.run()

        times = [r.time for r in engine.sink]
        self.assertEqual(len(times), 5)
        self.assertTrue(all(t < 0.5 for t in times))

    def test_simulation_stop_bounds_unlimited_flow(self):
        config = single_cell_config([
            FlowConfig(terminal=1, interval=0.25, start_time=0.0)
        ], simulation_time=1.0)
        engine = SimulationEngine(config)

        engine.run()

        self.assertEqual([r.time for r in engine.sink], [0.0, 0.25, 0.5, 0.75])

    def test_budget_never_exceeded(self):
        config = single_cell_config([
            FlowConfig(terminal=1, interval=0.01, max_packets=3, start_time=0.0),
            FlowConfig(terminal=1, direction='uplink', interval=0.01, max_packets=0, start_time=0.0)
        ], simulation_time=1.0)
        engine = SimulationEngine(config)

        engine.run()

        self.assertEqual(len(engine.sink), 3)
        self.assertEqual(engine.traffic_generator.get_flow(0).packets_sent, 3)
        self.assertEqual(engine.traffic_generator.get_flow(1).packets_sent, 0)
        self.assertEqual(engine.traffic_generator.get_flow(1).state, FlowState.COMPLETED)

    def test_uplink_and_downlink_endpoints(self):
        config = single_cell_config([
            FlowConfig(terminal=1, direction='downlink', interval=0.1, max_packets=1),
            FlowConfig(terminal=1, direction='ul', interval=0.1, max_packets=1)
        ], simulation_time=1.0)
        engine = SimulationEngine(config)

        engine.run()

        downlink = engine.traffic_generator.get_flow(0)
        uplink = engine.traffic_generator.get_flow(1)
        self.assertEqual((downlink.source, downlink.destination), (2, 1))
        self.assertEqual((uplink.source, uplink.destination), (1, 2))
        self.assertEqual([r.direction for r in engine.sink], ['downlink', 'uplink'])

    def test_stop_flow_cancels_next_emission(self):
        config = single_cell_config([FlowConfig(terminal=1, interval=0.1)], simulation_time=1.0)
        engine = SimulationEngine(config)
        engine.setup()
        engine.scheduler.schedule(0.35, engine.traffic_generator.stop_flow, 0)

        engine.run()

        self.assertEqual(len(engine.sink), 4)
        self.assertEqual(engine.traffic_generator.get_flow(0).state, FlowState.STOPPED)

    def test_detach_suspends_flow(self):
        config = single_cell_config([FlowConfig(terminal=1, interval=0.1)], simulation_time=1.0)
        engine = SimulationEngine(config)
        engine.setup()
        engine.scheduler.schedule(0.45, engine.attachment_manager.detach, 1)

        engine.run()

        self.assertEqual(len(engine.sink), 5)
        self.assertEqual(engine.traffic_generator.get_flow(0).state, FlowState.SUSPENDED)

    def test_resume_after_attachment(self):
        config = single_cell_config([
            FlowConfig(terminal=1, interval=0.001, max_packets=10, start_time=0.4)
        ], simulation_time=1.0, auto_attach=False)
        engine = SimulationEngine(config)
        engine.setup()

        def attach_and_resume():
            engine.attachment_manager.attach(1, 0)
            self.assertTrue(engine.traffic_generator.resume_flow(0))

        engine.scheduler.schedule(0.5, attach_and_resume)
        engine.run()

        records = engine.sink.records
        self.assertEqual(len(records), 10)
        self.assertAlmostEqual(records[0].time, 0.5, places=9)
        self.assertAlmostEqual(records[-1].time, 0.509, places=9)

    def test_resume_of_completed_flow_is_refused(self):
        config = single_cell_config([FlowConfig(terminal=1, interval=0.1, max_packets=1)], simulation_time=1.0)
        engine = SimulationEngine(config)
        engine.run()
        self.assertFalse(engine.traffic_generator.resume_flow(0))

    def test_add_flow_validation(self):
        config = single_cell_config([], simulation_time=1.0)
        engine = SimulationEngine(config)
        engine.setup()
        generator = engine.traffic_generator

        with self.assertRaises(ConfigurationError):
            generator.add_flow(0, 2, interval=0.1, packet_size=100)  # no terminal endpoint
        with self.assertRaises(ConfigurationError):
            generator.add_flow(2, 1, interval=0.0, packet_size=100)
        with self.assertRaises(ConfigurationError):
            generator.add_flow(2, 1, interval=0.1, packet_size=100, start_time=0.5, stop_time=0.5)
        with self.assertRaises(UnknownFlowError) as ctx:
            generator.get_flow(7)
        self.assertIsInstance(ctx.exception, KeyError)
        self.assertIsInstance(ctx.exception, SimulationError)
        self.assertEqual(str(ctx.exception), "Unknown flow id 7")

    def test_flow_config_validation(self):
        with self.assertRaises(ConfigurationError):
            single_cell_config([FlowConfig(terminal=0)]).validate()  # base station, not a terminal
        with self.assertRaises(ConfigurationError):
            single_cell_config([FlowConfig(terminal=1, start_time=0.5, stop_time=0.2)]).validate()
        with self.assertRaises(ConfigurationError):
            single_cell_config([FlowConfig(terminal=1)], use_remote_host=False).validate()


class TestTraceSink(unittest.TestCase):
    """Test TraceSink functionality."""

    def make_record(self, time, imsi=1):
        return TraceRecord(time=time, imsi=imsi, cell_id=0, rnti=1, packet_size=1500)

    def test_records_in_arrival_order(self):
        sink = TraceSink()
        for t in (0.1, 0.2, 0.3):
            sink.record(self.make_record(t))

        self.assertEqual([r.time for r in sink.records], [0.1, 0.2, 0.3])
        self.assertEqual([r.time for r in sink], [0.1, 0.2, 0.3])
        self.assertEqual(len(sink), 3)
        self.assertIsInstance(sink.records, tuple)

    def test_callback_sees_same_sequence(self):
        config = single_cell_config([
            FlowConfig(terminal=1, interval=0.01, max_packets=20),
            FlowConfig(terminal=1, direction='uplink', interval=0.015, max_packets=20)
        ], simulation_time=1.0)
        engine = SimulationEngine(config)
        seen = []
        engine.sink.connect(seen.append)

        engine.run()

        self.assertEqual(tuple(seen), engine.sink.records)
        self.assertEqual(len(seen), 40)

    def test_records_are_immutable(self):
        record = self.make_record(0.1)
        with self.assertRaises(AttributeError):
            record.time = 0.2

    def test_to_dataframe(self):
        sink = TraceSink()
        sink.record(self.make_record(0.1, imsi=1))
        sink.record(self.make_record(0.2, imsi=2))

        df = sink.to_dataframe()

        self.assertEqual(len(df), 2)
        self.assertEqual(list(df['imsi']), [1, 2])
        self.assertIn('link_quality', df.columns)
        self.assertTrue(TraceSink().to_dataframe().empty)

    def test_clear(self):
        sink = TraceSink()
        sink.record(self.make_record(0.1))
        sink.clear()
        self.assertEqual(len(sink), 0)


if __name__ == '__main__':
    unittest.main()
