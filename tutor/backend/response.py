from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request


def _request_id(request: Optional[Request]) -> Optional[str]:
	if request is None:
		return None
	return getattr(request.state, "request_id", None)


def error_response(
	*,
	error: str,
	details: Optional[str] = None,
	request: Optional[Request] = None,
) -> Dict[str, Any]:
	payload: Dict[str, Any] = {"error": error}
	if details is not None:
		payload["details"] = details
	request_id = _request_id(request)
	if request_id:
		payload["request_id"] = request_id
	return payload


def error_detail(error: str, details: Optional[str] = None) -> Dict[str, Any]:
	"""HTTPException detail understood by the handlers in main."""
	return {"error": error, "details": details}
