import os
from logging import DEBUG, Logger, LoggerAdapter, basicConfig, getLogger
from typing import Any, Mapping, Optional


def configure_logging(filename: Optional[str] = None, level: int = DEBUG) -> None:
    if filename is not None:
        path = os.path.dirname(filename)
        if path and not os.path.exists(path):
            os.makedirs(path)

    basicConfig(
        level=level,
        format="%(asctime)-15s %(threadName)s %(levelname)s %(name)s %(message)s",
        filename=filename,
    )

    # aiohttp logs every connection at debug level
    getLogger("aiohttp.client").propagate = False


class CtxLogger(LoggerAdapter):
    def __init__(self, logger: Logger, extra: Mapping[str, Any], prefix: str) -> None:
        super().__init__(logger, extra)

        self.prefix = prefix

    def process(self, msg, kwargs):
        prefix = self.prefix % self.extra

        msg = f"{prefix}{msg}"
        return msg, kwargs
