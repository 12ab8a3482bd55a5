"""
rngsight.core.log
=================

Logging setup on top of loguru.

Modules log through ``from loguru import logger``. The package disables its
own records on import; a host application opts in by calling
`configure_logging`, which replaces loguru's handlers with a stderr sink and,
when `LogConfig.dir` is set, a date-stamped rotating file sink.
"""

from __future__ import annotations
import os
import sys
from typing import Optional

from loguru import logger

from rngsight.config import LogConfig

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {name}:{function} | {message}"


def configure_logging(config: Optional[LogConfig] = None) -> None:
    """Install rngsight's sinks and enable its log records.

    Calling it again replaces the previous sinks.
    """
    config = config or LogConfig()

    logger.remove()
    logger.add(sys.stderr, level=config.level, format=_FORMAT)
    if config.dir:
        os.makedirs(config.dir, exist_ok=True)
        logger.add(
            sink=os.path.join(config.dir, "rngsight_{time:YYYY-MM-DD}.log"),
            rotation=config.rotation,
            retention=config.retention,
            level=config.level,
            format=_FORMAT,
            enqueue=True,  # the scheduler thread logs too
            backtrace=True,
            diagnose=False,
        )
    logger.enable("rngsight")
    logger.info("rngsight logging configured (level={})", config.level)
