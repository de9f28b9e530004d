from .coordinator import SessionCoordinator, SessionEvent
from .main import create_coordinator

__all__ = ["SessionCoordinator", "SessionEvent", "create_coordinator"]
