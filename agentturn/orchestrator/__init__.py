"""Turn orchestration independent from backend and storage concerns."""

from agentturn.orchestrator.checkpoint import CheckpointScheduler
from agentturn.orchestrator.engine import TurnEngine
from agentturn.orchestrator.session import ChatSession

__all__ = ["ChatSession", "CheckpointScheduler", "TurnEngine"]
