"""
API routes package.

All route modules are imported here for easy access.
"""

from project_feed.api.routes import feed, health, statuses

__all__ = ["feed", "health", "statuses"]
