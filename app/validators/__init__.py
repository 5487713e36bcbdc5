"""
app/validators package marker.
"""

from app.validators.game_plan_validator import REQUIRED_FIELDS, GamePlanRowValidator

__all__ = [
    "GamePlanRowValidator",
    "REQUIRED_FIELDS",
]
