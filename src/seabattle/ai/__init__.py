"""AI package exports."""

from .strategies import (
    AdvancedStrategy,
    AiStrategy,
    BasicStrategy,
    IntermediateStrategy,
    strategy_for,
)

__all__ = [
    "AiStrategy",
    "BasicStrategy",
    "IntermediateStrategy",
    "AdvancedStrategy",
    "strategy_for",
]
