from __future__ import annotations

import asyncio
import contextlib
import logging
import threading

from fastapi import APIRouter, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from tutor.backend.errors import AnswerServiceError, InvalidRequest
from tutor.backend.response import error_detail
from tutor.backend.schemas import AskRequest, AskResponse, ErrorBody


logger = logging.getLogger(__name__)

router = APIRouter(tags=["ask"])

_DISCONNECT_POLL_S = 0.5


async def _watch_disconnect(request: Request, cancel_event: threading.Event) -> None:
	while not cancel_event.is_set():
		if await request.is_disconnected():
			logger.info("Client went away; cancelling answer [%s].", getattr(request.state, "request_id", "-"))
			cancel_event.set()
			return
		await asyncio.sleep(_DISCONNECT_POLL_S)


@router.post(
	"/ask",
	response_model=AskResponse,
	responses={
		400: {"model": ErrorBody},
		499: {"model": ErrorBody, "description": "Client disconnected before the answer was ready."},
		500: {"model": ErrorBody},
		504: {"model": ErrorBody, "description": "The assistant run did not finish in time."},
	},
)
async def ask(request: Request, payload: AskRequest):
	orchestrator = request.app.state.orchestrator
	cancel_event = threading.Event()
	watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
	try:
		result = await run_in_threadpool(
			orchestrator.answer,
			payload.text,
			user_id=payload.user_id,
			cancel_event=cancel_event,
		)
	except InvalidRequest as exc:
		raise HTTPException(status_code=exc.status_code, detail=error_detail(exc.message)) from exc
	except AnswerServiceError as exc:
		logger.error("Assistant /ask route error: %s", exc.message)
		raise HTTPException(
			status_code=exc.status_code,
			detail=error_detail("Failed to process assistant response", exc.message),
		) from exc
	finally:
		cancel_event.set()
		watcher.cancel()
		with contextlib.suppress(asyncio.CancelledError):
			await watcher

	logger.info(
		"Answered with %d attempt(s): %s",
		len(result.attempts),
		", ".join(f"{a.kind}={a.status}" for a in result.attempts) or "none",
	)
	return AskResponse(text=result.text, audio=result.audio)
