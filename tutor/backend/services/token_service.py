from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from tutor.backend import constants, prompts
from tutor.backend.errors import TokenBrokerError, UpstreamUnreachable


logger = logging.getLogger(__name__)


class TokenBroker:
	"""Exchanges the server API key for an ephemeral realtime session credential.

	One POST per call, no retry and no caching: every browser session gets a
	fresh credential carrying the persona instructions and tool manifest.
	"""

	def __init__(
		self,
		*,
		api_key: str,
		model: str = constants.DEFAULT_REALTIME_MODEL,
		voice: str = constants.DEFAULT_REALTIME_VOICE,
		mode: str = "compact",
		timeout_s: float = constants.DEFAULT_OPENAI_TIMEOUT_S,
		http_client: Optional[httpx.Client] = None,
		url: str = constants.REALTIME_SESSIONS_URL,
	):
		self._api_key = api_key
		self.model = model
		self.voice = voice
		self.mode = mode
		self._url = url
		self._http = http_client or httpx.Client(timeout=timeout_s)

	def session_request(self) -> Dict[str, Any]:
		return {
			"model": self.model,
			"voice": self.voice,
			"instructions": prompts.REALTIME_INSTRUCTIONS,
			"tools": prompts.realtime_tools(),
		}

	def issue(self) -> Dict[str, Any]:
		try:
			response = self._http.post(
				self._url,
				headers={
					"Authorization": f"Bearer {self._api_key}",
					"Content-Type": "application/json",
				},
				json=self.session_request(),
			)
		except httpx.TimeoutException as exc:
			logger.error("[TOKEN ERROR] Realtime session request timed out: %s", exc)
			raise UpstreamUnreachable("Realtime session request timed out.", details=str(exc)) from exc
		except httpx.HTTPError as exc:
			logger.error("[TOKEN ERROR] Realtime session request failed: %s", exc)
			raise UpstreamUnreachable("Realtime session request failed.", details=str(exc)) from exc

		if response.status_code >= 400:
			logger.error("[TOKEN ERROR] Status %s: %s", response.status_code, response.text)
			raise TokenBrokerError("OpenAI token fetch failed", details=response.text)

		try:
			data = response.json()
		except ValueError as exc:
			raise TokenBrokerError("OpenAI token response was not JSON", details=response.text) from exc

		secret = data.get("client_secret") if isinstance(data, dict) else None
		value = secret.get("value") if isinstance(secret, dict) else None
		if not value:
			logger.error("[TOKEN ERROR] No client_secret returned: %s", data)
			raise TokenBrokerError("Missing client_secret in OpenAI response", details=str(data))

		logger.info("Issued realtime session token (expires_at=%s).", secret.get("expires_at"))
		if self.mode == "raw":
			return data
		return {"token": value, "expires_in": secret.get("expires_at")}
