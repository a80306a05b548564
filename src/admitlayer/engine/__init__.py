"""Policy engine contracts and the immutable policy context."""

from admitlayer.engine.api import Engine, EngineResponse, RuleResponse, RuleStatus, RuleType
from admitlayer.engine.context import PolicyContext

__all__ = [
    "Engine",
    "EngineResponse",
    "PolicyContext",
    "RuleResponse",
    "RuleStatus",
    "RuleType",
]
