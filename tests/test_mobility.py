"""
Tests for geometry, topology and mobility functionality.
"""

import unittest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nrsim.core.config import MobilityType, NodeRole
from nrsim.core.errors import ConfigurationError, UnknownNodeError
from nrsim.core.scheduler import Scheduler
from nrsim.mobility.mobility_models import ConstantVelocityModel, MobilityManager, StaticModel
from nrsim.network.geometry import Building, Vector
from nrsim.network.topology import Node, TopologyStore


class TestVector(unittest.TestCase):
    """Test Vector class."""

    def test_distance_calculation(self):
        """Test distance calculation between positions."""
        self.assertAlmostEqual(Vector(0, 0, 0).distance_to(Vector(3, 4, 12)), 13.0, places=9)
        self.assertAlmostEqual(Vector(0, 0, 10).distance_2d_to(Vector(3, 4, 1.5)), 5.0, places=9)

    def test_vector_arithmetic(self):
        """Test vector addition, subtraction and scaling."""
        a = Vector(1, 2, 3)
        b = Vector(3, 4, 5)
        self.assertEqual(a + b, Vector(4, 6, 8))
        self.assertEqual(b - a, Vector(2, 2, 2))
        self.assertEqual(a * 2, Vector(2, 4, 6))
        self.assertEqual(2 * a, Vector(2, 4, 6))

    def test_from_sequence(self):
        self.assertEqual(Vector.from_sequence((1, 2), default_z=1.5), Vector(1.0, 2.0, 1.5))
        self.assertEqual(Vector.from_sequence([1, 2, 3]), Vector(1.0, 2.0, 3.0))
        with self.assertRaises(ValueError):
            Vector.from_sequence([1])


class TestBuilding(unittest.TestCase):
    """Test Building obstruction geometry."""

    def setUp(self):
        self.building = Building(x_min=10, x_max=12, y_min=10, y_max=20, z_min=0, z_max=5)

    def test_segment_through_building(self):
        self.assertTrue(self.building.intersects_segment(Vector(0, 15, 1.5), Vector(30, 15, 1.5)))

    def test_segment_passing_beside(self):
        self.assertFalse(self.building.intersects_segment(Vector(0, 5, 1.5), Vector(30, 5, 1.5)))

    def test_segment_passing_above(self):
        self.assertFalse(self.building.intersects_segment(Vector(0, 15, 10), Vector(30, 15, 10)))

    def test_segment_stopping_short(self):
        self.assertFalse(self.building.intersects_segment(Vector(0, 15, 1.5), Vector(9, 15, 1.5)))

    def test_contains(self):
        self.assertTrue(self.building.contains(Vector(11, 15, 1)))
        self.assertFalse(self.building.contains(Vector(13, 15, 1)))

    def test_inverted_bounds_rejected(self):
        with self.assertRaises(ValueError):
            Building(x_min=5, x_max=1, y_min=0, y_max=1)


class TestTopology(unittest.TestCase):
    """Test Node kinematics and the TopologyStore."""

    def test_node_position_is_analytic(self):
        node = Node(2, NodeRole.TERMINAL, Vector(90, 15, 1.5), Vector(0, 1, 0))
        self.assertEqual(node.position_at(0.0), Vector(90, 15, 1.5))
        self.assertAlmostEqual(node.position_at(2.5).y, 17.5, places=9)
        self.assertEqual(node.antenna_height, 1.5)

    def test_velocity_change_keeps_trajectory_continuous(self):
        node = Node(2, NodeRole.TERMINAL, Vector(0, 0, 1.5), Vector(1, 0, 0))
        node.set_velocity(Vector(0, 2, 0), 3.0)

        self.assertAlmostEqual(node.position_at(3.0).x, 3.0, places=9)
        self.assertAlmostEqual(node.position_at(4.0).x, 3.0, places=9)
        self.assertAlmostEqual(node.position_at(4.0).y, 2.0, places=9)

    def test_duplicate_id_rejected(self):
        topology = TopologyStore()
        topology.add_node(Node(0, NodeRole.BASE_STATION, Vector(0, 0, 10)))
        with self.assertRaises(ConfigurationError):
            topology.add_node(Node(0, NodeRole.TERMINAL, Vector(5, 0, 1.5)))

    def test_unknown_id(self):
        with self.assertRaises(UnknownNodeError):
            TopologyStore().get(99)

    def test_roles_sorted_by_id(self):
        topology = TopologyStore()
        topology.add_node(Node(3, NodeRole.TERMINAL, Vector(5, 0, 1.5)))
        topology.add_node(Node(1, NodeRole.BASE_STATION, Vector(0, 10, 10)))
        topology.add_node(Node(2, NodeRole.TERMINAL, Vector(6, 0, 1.5)))
        topology.add_node(Node(0, NodeRole.BASE_STATION, Vector(0, 0, 10)))

        self.assertEqual([n.node_id for n in topology.base_stations()], [0, 1])
        self.assertEqual([n.node_id for n in topology.terminals()], [2, 3])
        self.assertEqual(len(topology), 4)
        self.assertIn(3, topology)


class TestMobilityManager(unittest.TestCase):
    """Test MobilityManager functionality."""

    def setUp(self):
        self.scheduler = Scheduler()
        self.topology = TopologyStore()
        self.topology.add_node(Node(0, NodeRole.BASE_STATION, Vector(0, 0, 10)))
        self.topology.add_node(Node(1, NodeRole.TERMINAL, Vector(90, 15, 1.5), Vector(0, 1, 0)))
        self.manager = MobilityManager(self.scheduler, self.topology, update_interval=0.1)

    def test_install_models(self):
        self.assertIsInstance(self.manager.install(0, MobilityType.STATIC), StaticModel)
        self.assertIsInstance(self.manager.install(1, "constant_velocity"), ConstantVelocityModel)

    def test_static_model_rejects_velocity(self):
        with self.assertRaises(ConfigurationError):
            self.manager.install(1, MobilityType.STATIC)

        model = self.manager.install(0, MobilityType.STATIC)
        with self.assertRaises(ConfigurationError):
            model.set_velocity(Vector(1, 0, 0), 0.0)

    def test_constant_velocity_position_after_run(self):
        self.manager.install(1, MobilityType.CONSTANT_VELOCITY)
        self.manager.start()

        self.scheduler.run(1.0)

        position = self.manager.get_position(1)
        self.assertAlmostEqual(position.x, 90.0, places=9)
        self.assertAlmostEqual(position.y, 16.0, places=9)
        self.assertAlmostEqual(position.z, 1.5, places=9)

    def test_periodic_updates_fire_trace(self):
        updates = []
        self.manager.position_updated.connect(lambda t, node_id, pos: updates.append((t, node_id, pos)))
        self.manager.install(0, MobilityType.STATIC)
        self.manager.install(1, MobilityType.CONSTANT_VELOCITY)
        self.manager.start()

        self.scheduler.run(1.05)

        # Only the moving node is sampled
        self.assertEqual(len(updates), 10)
        self.assertTrue(all(node_id == 1 for _, node_id, _ in updates))
        t, _, position = updates[-1]
        self.assertAlmostEqual(position.y, 15.0 + t, places=9)
        self.assertEqual(len(self.manager.trajectories[1]), 11)

    def test_set_velocity_mid_run(self):
        self.manager.install(1, MobilityType.CONSTANT_VELOCITY)
        self.scheduler.schedule(0.5, self.manager.set_velocity, 1, Vector(2, 0, 0))

        self.scheduler.run(1.0)

        position = self.manager.get_position(1)
        self.assertAlmostEqual(position.x, 91.0, places=9)
        self.assertAlmostEqual(position.y, 15.5, places=9)

    def test_set_position(self):
        self.manager.install(1, MobilityType.CONSTANT_VELOCITY)
        self.manager.set_position(1, Vector(0, 0, 1.5))
        self.scheduler.run(2.0)
        self.assertAlmostEqual(self.manager.get_position(1).y, 2.0, places=9)

    def test_stop_cancels_updates(self):
        self.manager.install(1, MobilityType.CONSTANT_VELOCITY)
        self.manager.start()
        self.manager.stop()
        self.scheduler.run(1.0)
        self.assertEqual(len(self.manager.trajectories[1]), 1)

    def test_statistics(self):
        self.manager.install(0, MobilityType.STATIC)
        self.manager.install(1, MobilityType.CONSTANT_VELOCITY)

        stats = self.manager.get_statistics()

        self.assertEqual(stats['total_nodes'], 2)
        self.assertEqual(stats['moving_nodes'], 1)
        self.assertAlmostEqual(stats['max_speed'], 1.0)
        self.assertEqual(stats['mobility_models']['static'], 1)


if __name__ == '__main__':
    unittest.main()
