from .error_handlers import register_exception_handlers
from .timeout import TimeoutGuard, TimeoutGuardedRoute
from .vehicles import router as vehicles_router

__all__ = ["register_exception_handlers", "TimeoutGuard", "TimeoutGuardedRoute", "vehicles_router"]
