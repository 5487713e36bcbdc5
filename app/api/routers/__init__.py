"""
app/api/routers package marker.
"""

from app.api.routers.game_plan_import import router as game_plan_import_router

__all__ = [
    "game_plan_import_router",
]
