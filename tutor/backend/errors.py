from __future__ import annotations

from typing import Any, Dict, Optional


class ConfigurationError(Exception):
	"""Raised at startup when the environment cannot produce usable settings."""


class AnswerServiceError(Exception):
	status_code = 500
	code = "internal_error"

	def __init__(self, message: str, *, details: Optional[str] = None):
		super().__init__(message)
		self.message = message
		self.details = details


class InvalidRequest(AnswerServiceError):
	status_code = 400
	code = "invalid_request"


class UpstreamRunFailed(AnswerServiceError):
	"""A run reached failed, expired or cancelled on the vendor side."""

	status_code = 500
	code = "upstream_run_failed"

	def __init__(self, *, run_id: str, status: str, last_error: Optional[Dict[str, Any]] = None):
		if last_error:
			detail = f"Code: {last_error.get('code')}, Message: {last_error.get('message')}"
		else:
			detail = "No specific error details provided."
		super().__init__(f"Run {run_id} {status}. {detail}", details=detail)
		self.run_id = run_id
		self.status = status
		self.last_error = last_error


class UpstreamUnreachable(AnswerServiceError):
	status_code = 500
	code = "upstream_unreachable"


class RunTimedOut(AnswerServiceError):
	status_code = 504
	code = "run_timed_out"

	def __init__(self, *, run_id: str, polls: int, elapsed_s: float):
		super().__init__(
			f"Run {run_id} did not finish after {polls} polls ({elapsed_s:.1f}s).",
		)
		self.run_id = run_id
		self.polls = polls
		self.elapsed_s = elapsed_s


class RunCancelled(AnswerServiceError):
	status_code = 499
	code = "run_cancelled"


class SynthesisFailed(AnswerServiceError):
	status_code = 500
	code = "synthesis_failed"


class TokenBrokerError(AnswerServiceError):
	status_code = 500
	code = "token_broker_error"
