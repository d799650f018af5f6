"""日志配置"""

import logging
import os
import sys

from contextlib import contextmanager

LOG_LEVEL_ENV = "FACENORM_LOG_LEVEL"

logging.basicConfig(
    level=os.environ.get(LOG_LEVEL_ENV, "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def get_logger(name):
    return logging.getLogger(name)


@contextmanager
def silence_stderr():
    """Point FD 2 at /dev/null while OpenCV parses cascade XML.

    Its parser writes to the C-level stderr, out of reach of sys.stderr.
    """
    sys.stderr.flush()
    saved = os.dup(2)
    devnull = os.open(os.devnull, os.O_WRONLY)
    try:
        os.dup2(devnull, 2)
        yield
    finally:
        os.dup2(saved, 2)
        os.close(devnull)
        os.close(saved)
