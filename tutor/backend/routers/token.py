from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from tutor.backend.errors import AnswerServiceError, TokenBrokerError
from tutor.backend.response import error_detail
from tutor.backend.schemas import ErrorBody, TokenResponse


router = APIRouter(tags=["realtime"])


@router.get(
	"/token",
	responses={
		200: {"model": TokenResponse, "description": "Ephemeral credential, or the full session object in raw mode."},
		500: {"model": ErrorBody},
	},
)
def token(request: Request):
	broker = request.app.state.token_broker
	try:
		return broker.issue()
	except TokenBrokerError as exc:
		raise HTTPException(
			status_code=exc.status_code,
			detail=error_detail(exc.message, exc.details),
		) from exc
	except AnswerServiceError as exc:
		raise HTTPException(
			status_code=500,
			detail=error_detail("Token generation failed", exc.details or exc.message),
		) from exc
