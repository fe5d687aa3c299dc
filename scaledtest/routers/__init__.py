"""API routers."""

from scaledtest.routers import admin, analytics, health, reports, teams

__all__ = ["admin", "analytics", "health", "reports", "teams"]
