from __future__ import annotations

import logging

from rich.logging import RichHandler

_HANDLER_NAME = "volume_sentiment.rich"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(handler.get_name() == _HANDLER_NAME for handler in root.handlers):
        return

    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
