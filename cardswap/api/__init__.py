from cardswap.api.comments import router as comments_router
from cardswap.api.health import router as health_router
from cardswap.api.inventory import router as inventory_router
from cardswap.api.matches import router as matches_router
from cardswap.api.notifications import router as notifications_router
from cardswap.api.trades import router as trades_router

__all__ = [
    "comments_router",
    "health_router",
    "inventory_router",
    "matches_router",
    "notifications_router",
    "trades_router",
]
