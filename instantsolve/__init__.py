"""
InstantSolve query pipeline.

Classifies a query into a response mode, routes it to that mode's primary
model with a backup on failure, and normalizes the answer markup.
"""

from instantsolve.cancellation import CancellationToken
from instantsolve.dispatcher import ModelSelector, build_selector
from instantsolve.modes import Mode
from instantsolve.types import ConversationTurn, PipelineResult, Query, Role

__version__ = "1.0.0"

__all__ = [
    "CancellationToken",
    "ConversationTurn",
    "Mode",
    "ModelSelector",
    "PipelineResult",
    "Query",
    "Role",
    "build_selector",
]
