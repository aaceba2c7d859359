from .launcher import AgentComputer, Connector, Launcher
from .service import InstanceDescription, InstanceService

__all__ = [
    "AgentComputer",
    "Connector",
    "InstanceDescription",
    "InstanceService",
    "Launcher",
]
