"""
Exception hierarchy for the simulation core.
"""


class SimulationError(Exception):
    """Base class for all errors raised by the simulation core"""


class ConfigurationError(SimulationError, ValueError):
    """Invalid scenario configuration, detected before the run starts"""


class SchedulingError(SimulationError, ValueError):
    """Contract violation when submitting an event to the scheduler"""


class NoCandidateError(SimulationError):
    """Attachment requested with an empty base station candidate set"""


class UnknownNodeError(SimulationError, KeyError):
    """Node id not present in the topology"""

    def __str__(self):
        # KeyError quotes its argument, keep the plain message
        return str(self.args[0]) if self.args else ""


class NodeRoleError(SimulationError, ValueError):
    """Node used in a role it does not have, e.g. a terminal as serving cell"""


class UnknownFlowError(SimulationError, KeyError):
    """Flow id not registered with the traffic generator"""

    def __str__(self):
        return str(self.args[0]) if self.args else ""
