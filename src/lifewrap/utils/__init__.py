"""Utility helpers shared across LifeWrap modules."""

from lifewrap.utils.hashing import compute_input_hash, source_ids_to_json
from lifewrap.utils.periods import PeriodKey, period_bounds

__all__ = ["PeriodKey", "compute_input_hash", "period_bounds", "source_ids_to_json"]
