"""structlog loggers that write through the standard ``logging`` tree.

Everything lives under the ``reed`` logger, which carries a ``NullHandler``:
events are dropped until the application configures ``logging``.
"""

from __future__ import annotations

import logging

import structlog

logging.getLogger("reed").addHandler(logging.NullHandler())

_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.KeyValueRenderer(key_order=["event"]),
]


def get_logger(name: str):
    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=_PROCESSORS,
        wrapper_class=structlog.stdlib.BoundLogger,
    )
