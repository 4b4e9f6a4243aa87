"""Trip alert detection: pure evaluators and the persistence engine."""

from app.services.alerts.detectors import (
    AlertFinding,
    evaluate_route_deviation,
    evaluate_stoppage,
    evaluate_tracking_lost,
    evaluate_delay,
    calculate_delay_percentage,
    should_flag_delay,
)

__all__ = [
    "AlertFinding",
    "evaluate_route_deviation",
    "evaluate_stoppage",
    "evaluate_tracking_lost",
    "evaluate_delay",
    "calculate_delay_percentage",
    "should_flag_delay",
]
