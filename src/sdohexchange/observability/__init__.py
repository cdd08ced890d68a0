"""
Observability

Structured logging for SDOH Exchange.
"""

from sdohexchange.observability.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
