from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from tutor.backend import constants
from tutor.backend.config import Settings
from tutor.backend.errors import (
	AnswerServiceError,
	InvalidRequest,
	RunCancelled,
	RunTimedOut,
	SynthesisFailed,
)
from tutor.backend.services.openai_client import upstream_error
from tutor.backend.services.run_poller import PollPolicy, wait_for_run, wait_for_settle
from tutor.backend.services.speech_service import SpeechSynthesizer
from tutor.backend.services.tool_dispatch import ToolRegistry, default_registry


logger = logging.getLogger(__name__)

AttemptKind = Literal["grounded", "fallback"]


@dataclass
class AttemptRecord:
	kind: AttemptKind
	run_id: Optional[str] = None
	status: Optional[str] = None
	reply_length: int = 0
	error: Optional[str] = None


@dataclass
class AnswerResult:
	text: str
	audio: Optional[str] = None
	attempts: List[AttemptRecord] = field(default_factory=list)
	grounded_accepted: bool = False


def extract_reply(messages: Any) -> str:
	"""Return the text of the newest message when it was written by the assistant."""
	data = list(getattr(messages, "data", None) or [])
	if not data:
		return ""
	newest = data[0]
	if getattr(newest, "role", "assistant") != "assistant":
		return ""
	for block in getattr(newest, "content", None) or []:
		text = getattr(block, "text", None)
		value = getattr(text, "value", None)
		if isinstance(value, str) and value:
			return value
	return ""


class AnswerOrchestrator:
	"""Two-pass answer protocol over one fresh assistant thread per request.

	Pass 1 is forced through file search against the configured vector store
	and is best-effort: any upstream failure there reads as an empty reply.
	Pass 2 runs the assistant unconstrained when Pass 1 was skipped or came
	back shorter than ``fallback_reply_min_length``; its failures surface to
	the caller. At most two runs are created per call.
	"""

	def __init__(
		self,
		client: Any,
		settings: Settings,
		*,
		tools: Optional[ToolRegistry] = None,
		synthesizer: Optional[SpeechSynthesizer] = None,
	):
		self._client = client
		self._settings = settings
		self._tools = tools if tools is not None else default_registry()
		self._synthesizer = synthesizer or SpeechSynthesizer(
			client, model=settings.voice_model, voice=settings.voice_name
		)
		self._policy = PollPolicy(
			interval_s=settings.poll_interval_s,
			max_attempts=settings.poll_max_attempts,
			timeout_s=settings.run_timeout_s,
		)

	def answer(
		self,
		user_text: Optional[str],
		*,
		user_id: Optional[str] = None,
		cancel_event: Optional[threading.Event] = None,
	) -> AnswerResult:
		if not isinstance(user_text, str) or not user_text.strip():
			raise InvalidRequest("Missing text in request body")

		thread_id = self._open_thread(user_text, user_id=user_id)
		attempts: List[AttemptRecord] = []
		reply = ""

		if self._settings.grounded_pass_enabled:
			logger.info("Attempting PASS 1: vector store search on thread %s.", thread_id)
			reply = self._grounded_pass(thread_id, attempts, cancel_event)
			logger.info("Vector reply length: %d.", len(reply))
			grounded = attempts[-1]
			if grounded.error == RunTimedOut.code and not self._thread_released(thread_id, grounded.run_id):
				logger.warning("Thread %s still busy with run %s; falling back on a fresh thread.", thread_id, grounded.run_id)
				thread_id = self._open_thread(user_text, user_id=user_id)
		else:
			logger.info("Skipping PASS 1: vector store search (OPENAI_VECTOR_STORE_ID not configured).")

		grounded_accepted = bool(reply) and len(reply) >= self._settings.fallback_reply_min_length
		if not grounded_accepted:
			logger.info(
				"Grounded reply insufficient (length: %d, min: %d). Retrying with general model knowledge.",
				len(reply),
				self._settings.fallback_reply_min_length,
			)
			reply = self._fallback_pass(thread_id, attempts, cancel_event)

		return AnswerResult(
			text=reply,
			audio=self._speak(reply),
			attempts=attempts,
			grounded_accepted=grounded_accepted,
		)

	def _open_thread(self, user_text: str, *, user_id: Optional[str]) -> str:
		params: Dict[str, Any] = {}
		if self._settings.grounded_pass_enabled:
			params["tool_resources"] = {
				"file_search": {"vector_store_ids": [self._settings.vector_store_id]},
			}
		if user_id:
			params["metadata"] = {"user_id": user_id}
		try:
			thread = self._client.beta.threads.create(**params)
			self._client.beta.threads.messages.create(thread_id=thread.id, role="user", content=user_text)
		except Exception as exc:
			raise upstream_error(exc) from exc
		return thread.id

	def _start_run(self, thread_id: str, record: AttemptRecord, **params: Any) -> Any:
		try:
			run = self._client.beta.threads.runs.create(
				thread_id=thread_id,
				assistant_id=self._settings.assistant_id,
				**params,
			)
		except Exception as exc:
			raise upstream_error(exc) from exc
		record.run_id = run.id
		record.status = run.status
		return run

	def _wait(self, thread_id: str, record: AttemptRecord, cancel_event: Optional[threading.Event]) -> str:
		try:
			run = wait_for_run(
				self._client,
				thread_id=thread_id,
				run_id=record.run_id,
				policy=self._policy,
				tools=self._tools,
				cancel_event=cancel_event,
			)
		except (RunTimedOut, RunCancelled):
			self._cancel_run(thread_id, record.run_id)
			raise
		record.status = run.status
		try:
			messages = self._client.beta.threads.messages.list(thread_id=thread_id, order="desc", limit=1)
		except Exception as exc:
			raise upstream_error(exc) from exc
		return extract_reply(messages)

	def _cancel_run(self, thread_id: str, run_id: Optional[str]) -> None:
		if not run_id:
			return
		try:
			self._client.beta.threads.runs.cancel(run_id=run_id, thread_id=thread_id)
		except Exception as exc:
			logger.warning("Could not cancel run %s on thread %s: %s", run_id, thread_id, exc)

	def _thread_released(self, thread_id: str, run_id: Optional[str]) -> bool:
		if not run_id:
			return True
		try:
			return wait_for_settle(self._client, thread_id=thread_id, run_id=run_id, policy=self._policy)
		except AnswerServiceError as exc:
			logger.warning("Could not confirm run %s stopped: %s", run_id, exc.message)
			return False

	def _grounded_pass(
		self,
		thread_id: str,
		attempts: List[AttemptRecord],
		cancel_event: Optional[threading.Event],
	) -> str:
		record = AttemptRecord(kind="grounded")
		attempts.append(record)
		try:
			self._start_run(
				thread_id,
				record,
				tools=[{"type": "file_search"}],
				tool_choice={"type": "file_search"},
			)
			reply = self._wait(thread_id, record, cancel_event)
		except RunCancelled:
			raise
		except AnswerServiceError as exc:
			logger.error("Error during PASS 1 (vector store search): %s", exc.message)
			record.error = exc.code
			return ""
		record.reply_length = len(reply)
		return reply

	def _fallback_pass(
		self,
		thread_id: str,
		attempts: List[AttemptRecord],
		cancel_event: Optional[threading.Event],
	) -> str:
		record = AttemptRecord(kind="fallback")
		attempts.append(record)
		if self._settings.injects_clarification:
			try:
				self._client.beta.threads.messages.create(
					thread_id=thread_id,
					role="user",
					content=self._settings.clarification_prompt,
				)
			except Exception as exc:
				raise upstream_error(exc) from exc
			logger.info("Added clarification prompt for fallback.")

		try:
			self._start_run(thread_id, record)
			reply = self._wait(thread_id, record, cancel_event)
		except AnswerServiceError as exc:
			record.error = exc.code
			raise
		record.reply_length = len(reply)
		if not reply:
			return constants.NO_ANSWER_PLACEHOLDER
		logger.info("Fallback reply length: %d.", len(reply))
		return reply

	def _speak(self, reply: str) -> Optional[str]:
		if len(reply) < self._settings.speech_reply_min_length:
			return None
		try:
			return self._synthesizer.synthesize(reply)
		except SynthesisFailed as exc:
			logger.error("Speech generation error: %s (%s)", exc.message, exc.details)
			return None
