from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

from tutor.backend.config import load_settings
from tutor.backend.errors import ConfigurationError
from tutor.backend.logging_setup import configure_logging
from tutor.backend.main import create_app


logger = logging.getLogger("tutor.backend.server")


def main() -> None:
	load_dotenv()
	configure_logging(os.getenv("LOG_LEVEL", "INFO").upper())
	try:
		settings = load_settings()
	except ConfigurationError as exc:
		logger.critical("FATAL ERROR: %s", exc)
		raise SystemExit(1) from exc
	if not settings.grounded_pass_enabled:
		logger.warning("OPENAI_VECTOR_STORE_ID is not set. The vector store search pass will be skipped.")

	app = create_app(settings)
	mode = "production" if settings.is_production else "development"
	logger.info("Server running in %s mode on http://localhost:%d", mode, settings.port)
	uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
	main()
