from .browser import ActivitySource, NavigationController, SimulatedDocument, SimulatedHistory
from .clock import Clock, ManualClock, SystemClock, TimerHandle
from .storage import InMemoryStore, KeyValueBroadcast, KeyValueStore, SharedMemoryMedium, SharedView

__all__ = [
    "ActivitySource",
    "NavigationController",
    "SimulatedDocument",
    "SimulatedHistory",
    "Clock",
    "ManualClock",
    "SystemClock",
    "TimerHandle",
    "InMemoryStore",
    "KeyValueBroadcast",
    "KeyValueStore",
    "SharedMemoryMedium",
    "SharedView",
]
