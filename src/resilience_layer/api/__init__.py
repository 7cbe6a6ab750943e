"""
FastAPI read-model API over the resilience components.

- routes.py: Health, circuit breaker, retry, scheduler and cost endpoints
- dependencies.py: Dependency injection for settings and the component container
- models.py: API-specific request/response models
- error_handlers.py: Exception handlers for user-facing error responses
- middleware.py: Request tracing
"""

from resilience_layer.api import dependencies, error_handlers, models
from resilience_layer.api.routes import router

__all__ = [
    "router",
    "dependencies",
    "error_handlers",
    "models",
]
