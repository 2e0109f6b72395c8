"""日志配置模块"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "share_dl"


def setup_logging(verbose: bool = False, console: Optional[Console] = None) -> logging.Logger:
    """为 share_dl 日志器安装 RichHandler

    重复调用只会替换已有的处理器。
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_path=False,
        show_level=verbose,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
