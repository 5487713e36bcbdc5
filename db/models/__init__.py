"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.country import Country
from db.models.game_plan import GamePlan
from db.models.media import MediaSubType, MediaType
from db.models.organisation import BusinessUnit, FinancialCycle, PMType
from db.models.product import Campaign, Category, EntityStatus, Range

__all__ = [
    "BusinessUnit",
    "Campaign",
    "Category",
    "Country",
    "EntityStatus",
    "FinancialCycle",
    "GamePlan",
    "MediaSubType",
    "MediaType",
    "PMType",
    "Range",
]
