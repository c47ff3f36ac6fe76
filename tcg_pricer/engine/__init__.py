from tcg_pricer.engine.aggregate import TotalSummary, calculate_total, summarize_total
from tcg_pricer.engine.arbitration import arbitrate

__all__ = [
    "TotalSummary",
    "arbitrate",
    "calculate_total",
    "summarize_total",
]
