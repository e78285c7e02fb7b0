# chuk_ai_agent_engine/budget/__init__.py
"""
Token budgeting: message pricing, usage metering and compression.
"""

from .compressors import (
    AdaptiveCompressor,
    CompressionContext,
    Compressor,
    CompressorRegistry,
    FifoCompressor,
    PriorityCompressor,
    priority_score,
)
from .counter import (
    BaseTokenCounter,
    HeuristicTokenCounter,
    TiktokenCounter,
    TokenCostFunction,
)
from .manager import TokenBudgetManager
from .models import (
    BudgetExceededAction,
    CompressionStats,
    CompressionStrategy,
    PriorityWeights,
    TokenBudgetConfig,
    TokenUsage,
)

__all__ = [
    # Enums
    "BudgetExceededAction",
    "CompressionStrategy",
    # Models
    "CompressionStats",
    "PriorityWeights",
    "TokenBudgetConfig",
    "TokenUsage",
    # Counting
    "BaseTokenCounter",
    "HeuristicTokenCounter",
    "TiktokenCounter",
    "TokenCostFunction",
    # Compression
    "AdaptiveCompressor",
    "CompressionContext",
    "Compressor",
    "CompressorRegistry",
    "FifoCompressor",
    "PriorityCompressor",
    "priority_score",
    # Manager
    "TokenBudgetManager",
]
