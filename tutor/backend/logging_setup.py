from __future__ import annotations

import logging


_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
	logging.basicConfig(level=level, format=_FORMAT)
	# Request lines come from RequestContextMiddleware.
	logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
	logging.getLogger("httpx").setLevel(logging.WARNING)
	logging.getLogger("openai").setLevel(logging.WARNING)
