import logging
import sys

import structlog


def setup_logging(level: int = logging.INFO, json_logs: bool = True) -> None:
    """Route structlog through stdlib logging on stderr.

    stdout is reserved for command output (tables, exported data), so log
    lines never interleave with it.
    """
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr, force=True)

    # Textual and asyncio are chatty at debug level
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("markdown_it").setLevel(logging.ERROR)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
