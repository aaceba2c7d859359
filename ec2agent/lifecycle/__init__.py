from .cancel import CancelSignal
from .controller import LifecycleController, Session
from .poller import InstanceStatePoller

__all__ = [
    "CancelSignal",
    "InstanceStatePoller",
    "LifecycleController",
    "Session",
]
