"""
Engine process, operation dispatcher and the asynchronous bridge to it.
"""

from .engine import AnalysisEngine, OPERATION_ALIASES
from .bridge import BridgeState, EngineBridge, PendingRequest
from .worker import READY_MARKER

__all__ = [
    "AnalysisEngine",
    "OPERATION_ALIASES",
    "BridgeState",
    "EngineBridge",
    "PendingRequest",
    "READY_MARKER"
]
