"""Gold ratio analysis tools."""

from gold_ratio_mcp.tools.analyze import analyze_gold_ratio
from gold_ratio_mcp.tools.override import override_fundamental

__all__ = [
    "analyze_gold_ratio",
    "override_fundamental",
]
