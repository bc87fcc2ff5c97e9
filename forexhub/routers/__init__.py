# forexhub/routers/__init__.py
"""
API routers. Each content module has a public router and an admin router
guarded by the X-API-Key header.
"""

from forexhub.routers.analytics import admin_router as analytics_admin_router
from forexhub.routers.analytics import router as analytics_router
from forexhub.routers.categories import admin_router as categories_admin_router
from forexhub.routers.categories import router as categories_router
from forexhub.routers.comments import admin_router as comments_admin_router
from forexhub.routers.comments import router as comments_router
from forexhub.routers.downloads import admin_router as downloads_admin_router
from forexhub.routers.downloads import router as downloads_router
from forexhub.routers.health import router as health_router
from forexhub.routers.newsletter import admin_router as newsletter_admin_router
from forexhub.routers.newsletter import router as newsletter_router
from forexhub.routers.posts import admin_router as posts_admin_router
from forexhub.routers.posts import router as posts_router
from forexhub.routers.users import admin_router as users_admin_router
from forexhub.routers.users import router as users_router

__all__ = [
    "health_router",
    "posts_router",
    "posts_admin_router",
    "downloads_router",
    "downloads_admin_router",
    "categories_router",
    "categories_admin_router",
    "comments_router",
    "comments_admin_router",
    "users_router",
    "users_admin_router",
    "analytics_router",
    "analytics_admin_router",
    "newsletter_router",
    "newsletter_admin_router",
]
