"""Poll cycles over monitored targets: collaborator contract, orchestrator, timer."""

from src.poller.collaborator import Collaborator, load_collaborator
from src.poller.orchestrator import PollCycleOrchestrator
from src.poller.scheduler import PollScheduler

__all__ = [
    "Collaborator",
    "PollCycleOrchestrator",
    "PollScheduler",
    "load_collaborator",
]
