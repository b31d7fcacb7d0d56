"""
Correlation ID Middleware
Provides automatic correlation ID injection for request tracing across the blocking executor
"""

from asgi_correlation_id import CorrelationIdMiddleware

# Re-export CorrelationIdMiddleware for convenience
__all__ = ["CorrelationIdMiddleware"]
