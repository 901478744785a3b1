# Domain Services
from .alert_evaluator import (
    AlertEvaluator,
    level_percentage,
    two_tier_band,
    water_level_band,
    water_level_severity,
)
from .alert_messages import build_alert_message

__all__ = [
    'AlertEvaluator',
    'build_alert_message',
    'level_percentage',
    'two_tier_band',
    'water_level_band',
    'water_level_severity',
]
