from __future__ import annotations

import openai
from openai import OpenAI

from tutor.backend.errors import AnswerServiceError, UpstreamUnreachable


def build_openai_client(*, api_key: str, timeout_s: float) -> OpenAI:
	return OpenAI(api_key=api_key, timeout=timeout_s)


def upstream_error(exc: Exception) -> AnswerServiceError:
	if isinstance(exc, AnswerServiceError):
		return exc
	if isinstance(exc, openai.APITimeoutError):
		return UpstreamUnreachable("Assistant provider timed out.", details=str(exc))
	if isinstance(exc, openai.APIConnectionError):
		return UpstreamUnreachable("Assistant provider could not be reached.", details=str(exc))
	if isinstance(exc, openai.APIStatusError):
		return UpstreamUnreachable(
			f"Assistant provider returned HTTP {exc.status_code}.",
			details=str(exc),
		)
	return UpstreamUnreachable("Assistant provider request failed.", details=str(exc))
