"""Internal logging for the package itself.

Events are routed through the standard library so they stay silent until the
application configures logging.
"""

import logging

import structlog
from structlog.stdlib import BoundLogger


def get_internal_logger(name: str) -> BoundLogger:
    """Get a structlog logger that forwards to the stdlib logger ``name``.

    Args:
        name: Logger name (typically __name__)

    Returns:
        BoundLogger writing through ``logging.getLogger(name)``
    """
    return BoundLogger(
        logging.getLogger(name),
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.render_to_log_kwargs,
        ],
        context={},
    )
