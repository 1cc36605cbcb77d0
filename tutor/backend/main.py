from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from tutor.backend import constants
from tutor.backend.config import Settings, load_settings
from tutor.backend.middleware import RequestContextMiddleware
from tutor.backend.response import error_response
from tutor.backend.routers import ask, token
from tutor.backend.services.answer_service import AnswerOrchestrator
from tutor.backend.services.openai_client import build_openai_client
from tutor.backend.services.token_service import TokenBroker
from tutor.backend.spa import register_spa


logger = logging.getLogger(__name__)


def create_app(
	settings: Optional[Settings] = None,
	*,
	client: Any = None,
	orchestrator: Optional[AnswerOrchestrator] = None,
	token_broker: Optional[TokenBroker] = None,
) -> FastAPI:
	settings = settings or load_settings()
	app = FastAPI(
		title=constants.APP_NAME,
		version=constants.APP_VERSION,
	)
	_register_state(app, settings, client=client, orchestrator=orchestrator, token_broker=token_broker)
	_register_middleware(app, settings)
	_register_handlers(app)
	_register_routers(app, settings)
	return app


def _register_state(
	app: FastAPI,
	settings: Settings,
	*,
	client: Any,
	orchestrator: Optional[AnswerOrchestrator],
	token_broker: Optional[TokenBroker],
) -> None:
	if orchestrator is None:
		if client is None:
			client = build_openai_client(api_key=settings.api_key, timeout_s=settings.openai_timeout_s)
		orchestrator = AnswerOrchestrator(client, settings)
	if token_broker is None:
		token_broker = TokenBroker(
			api_key=settings.api_key,
			model=settings.realtime_model,
			voice=settings.realtime_voice,
			mode=settings.token_response_mode,
			timeout_s=settings.openai_timeout_s,
		)
	app.state.settings = settings
	app.state.orchestrator = orchestrator
	app.state.token_broker = token_broker


def _register_middleware(app: FastAPI, settings: Settings) -> None:
	app.add_middleware(RequestContextMiddleware)
	app.add_middleware(GZipMiddleware, minimum_size=1024)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=constants.DEFAULT_CORS_ALLOW_ORIGINS,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	app.add_middleware(
		TrustedHostMiddleware,
		allowed_hosts=list(settings.trusted_hosts),
	)


def _register_routers(app: FastAPI, settings: Settings) -> None:
	app.include_router(ask.router)
	app.include_router(token.router)
	register_spa(app, settings)


def _register_handlers(app: FastAPI) -> None:
	@app.exception_handler(HTTPException)
	async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
		error = _exc_message(exc.detail)
		details = None
		if isinstance(exc.detail, dict):
			detail_error = exc.detail.get("error")
			detail_details = exc.detail.get("details")
			if isinstance(detail_error, str) and detail_error.strip():
				error = detail_error.strip()
			if detail_details is not None:
				details = str(detail_details)
		payload = error_response(error=error, details=details, request=request)
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(StarletteHTTPException)
	async def handle_starlette_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
		payload = error_response(error=_exc_message(exc.detail), request=request)
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(RequestValidationError)
	async def handle_request_validation_error(
		request: Request,
		exc: RequestValidationError,
	) -> JSONResponse:
		issues = []
		for issue in exc.errors():
			loc = ".".join(str(part) for part in issue.get("loc", []))
			msg = issue.get("msg", "Invalid request.")
			issues.append(f"{loc}: {msg}" if loc else msg)
		payload = error_response(
			error="Invalid request body",
			details="; ".join(issues) or None,
			request=request,
		)
		return JSONResponse(status_code=400, content=payload)

	@app.exception_handler(Exception)
	async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
		logger.exception("Unhandled error on %s %s", request.method, request.url.path)
		payload = error_response(error="Internal server error.", request=request)
		return JSONResponse(status_code=500, content=payload)


def _exc_message(detail: Any) -> str:
	if isinstance(detail, str):
		return detail
	if detail is None:
		return "Request failed."
	return str(detail)
