from app.middleware.request_guard import RequestGuardMiddleware

__all__ = [
    "RequestGuardMiddleware",
]
