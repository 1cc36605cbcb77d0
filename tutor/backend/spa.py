from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, PlainTextResponse, Response

from tutor.backend.config import Settings


logger = logging.getLogger(__name__)

_NO_CACHE = {"Cache-Control": "no-cache"}
_HOP_BY_HOP = {"connection", "keep-alive", "transfer-encoding", "content-encoding", "content-length"}


def _resolve_asset(root: Path, full_path: str) -> Optional[Path]:
	if not full_path:
		return None
	candidate = (root / full_path).resolve()
	if root not in candidate.parents:
		return None
	return candidate if candidate.is_file() else None


def _static_handler(root: Path, headers: Optional[Dict[str, str]] = None):
	root = root.resolve()
	index = root / "index.html"

	async def serve_spa(full_path: str):
		asset = _resolve_asset(root, full_path)
		if asset is not None:
			return FileResponse(asset, headers=headers)
		return FileResponse(index, headers=headers)

	return serve_spa


def _missing_frontend_handler(root: Path):
	message = (
		f"Frontend not found. Ensure your client application is built into '{root}'."
	)

	async def serve_missing(full_path: str):
		return PlainTextResponse(message, status_code=404)

	return serve_missing


def _dev_proxy_handler(dev_server_url: str):
	base = dev_server_url.rstrip("/")

	async def proxy(full_path: str, request: Request):
		url = f"{base}/{full_path}"
		try:
			async with httpx.AsyncClient(timeout=10.0) as client:
				upstream = await client.get(url, params=request.query_params, headers={"Accept": request.headers.get("accept", "*/*")})
		except httpx.HTTPError as exc:
			logger.error("Frontend dev server unreachable at %s: %s", base, exc)
			return PlainTextResponse(
				f"Frontend dev server unreachable at {base}. Start it or unset VITE_DEV_SERVER_URL.",
				status_code=502,
			)
		headers = {k: v for k, v in upstream.headers.items() if k.lower() not in _HOP_BY_HOP}
		return Response(content=upstream.content, status_code=upstream.status_code, headers=headers)

	return proxy


def register_spa(app: FastAPI, settings: Settings) -> None:
	"""Route every remaining GET path to the single-page UI.

	Must be registered after the API routers so /ask and /token win.
	"""
	root = settings.frontend_dist_dir
	if settings.is_production:
		if (root / "index.html").is_file():
			handler = _static_handler(root)
			logger.info("Serving built frontend from %s.", root)
		else:
			logger.warning("Production mode: frontend not found at %s. Frontend will not be served.", root)
			handler = _missing_frontend_handler(root)
	elif settings.dev_server_url:
		handler = _dev_proxy_handler(settings.dev_server_url)
		logger.info("Proxying frontend requests to dev server %s.", settings.dev_server_url)
	elif (root / "index.html").is_file():
		handler = _static_handler(root, headers=_NO_CACHE)
		logger.info("Development mode: serving %s without caching.", root)
	else:
		handler = _missing_frontend_handler(root)

	app.add_api_route("/{full_path:path}", handler, methods=["GET"], include_in_schema=False)
