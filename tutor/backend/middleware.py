from __future__ import annotations

import logging
import time
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send


logger = logging.getLogger("tutor.backend.access")


class RequestContextMiddleware:
	"""Tags each HTTP exchange with a request id and its processing time.

	Written against raw ASGI so ``receive`` reaches the routes untouched;
	``/ask`` relies on seeing ``http.disconnect`` to stop polling.
	"""

	def __init__(self, app: ASGIApp) -> None:
		self.app = app

	async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
		if scope["type"] != "http":
			await self.app(scope, receive, send)
			return

		request_id = Headers(scope=scope).get("X-Request-ID") or uuid.uuid4().hex
		scope.setdefault("state", {})["request_id"] = request_id
		start = time.perf_counter()
		status_code = 500

		async def send_with_context(message: Message) -> None:
			nonlocal status_code
			if message["type"] == "http.response.start":
				status_code = message["status"]
				headers = MutableHeaders(scope=message)
				headers["X-Request-ID"] = request_id
				headers["X-Process-Time"] = f"{time.perf_counter() - start:.6f}"
			await send(message)

		try:
			await self.app(scope, receive, send_with_context)
		finally:
			logger.info(
				"%s %s -> %d in %.3fs [%s]",
				scope.get("method", "-"),
				scope.get("path", "-"),
				status_code,
				time.perf_counter() - start,
				request_id,
			)
