"""
Monitoring Module
Exports for structured logging
"""

from newsletter.services.monitoring.logging import (
    setup_logging,
    add_correlation_id,
    CorrelationJsonFormatter,
)

__all__ = [
    "setup_logging",
    "add_correlation_id",
    "CorrelationJsonFormatter",
]
