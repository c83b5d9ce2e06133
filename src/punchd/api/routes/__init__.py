"""API routes."""

from punchd.api.routes.health import router as health_router
from punchd.api.routes.pay_periods import router as pay_periods_router
from punchd.api.routes.settings import router as settings_router
from punchd.api.routes.time_entries import router as time_entries_router
from punchd.api.routes.timesheets import router as timesheets_router

__all__ = [
    "health_router",
    "pay_periods_router",
    "settings_router",
    "time_entries_router",
    "timesheets_router",
]
