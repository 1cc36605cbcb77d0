from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, Optional

from tutor.backend import constants
from tutor.backend.errors import RunCancelled, RunTimedOut, UpstreamRunFailed
from tutor.backend.services.openai_client import upstream_error
from tutor.backend.services.tool_dispatch import ToolRegistry


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollPolicy:
	interval_s: float = constants.DEFAULT_POLL_INTERVAL_S
	max_attempts: int = constants.DEFAULT_POLL_MAX_ATTEMPTS
	timeout_s: float = constants.DEFAULT_RUN_TIMEOUT_S


def _last_error(run: Any) -> Optional[dict]:
	error = getattr(run, "last_error", None)
	if error is None:
		return None
	if isinstance(error, dict):
		return error
	return {"code": getattr(error, "code", None), "message": getattr(error, "message", None)}


def _tool_call_ids(run: Any) -> FrozenSet[str]:
	action = getattr(run, "required_action", None)
	submit = getattr(action, "submit_tool_outputs", None)
	return frozenset(getattr(call, "id", "") for call in (getattr(submit, "tool_calls", None) or []))


def _needs_tool_outputs(run: Any) -> bool:
	if run.status != "requires_action":
		return False
	action = getattr(run, "required_action", None)
	return getattr(action, "type", None) == "submit_tool_outputs"


def wait_for_run(
	client: Any,
	*,
	thread_id: str,
	run_id: str,
	policy: PollPolicy = PollPolicy(),
	tools: Optional[ToolRegistry] = None,
	cancel_event: Optional[threading.Event] = None,
	sleep: Callable[[float], None] = time.sleep,
	clock: Callable[[], float] = time.monotonic,
) -> Any:
	"""Poll a run until it leaves the waiting statuses and return it.

	Raises UpstreamRunFailed for failed/expired/cancelled runs, RunTimedOut
	when the policy's poll count or elapsed-time ceiling is hit first, and
	RunCancelled as soon as ``cancel_event`` is set.
	"""
	runs = client.beta.threads.runs
	tools = tools or ToolRegistry()
	started = clock()
	try:
		run = runs.retrieve(run_id=run_id, thread_id=thread_id)
	except Exception as exc:
		raise upstream_error(exc) from exc
	polls = 1
	answered: FrozenSet[str] = frozenset()

	while run.status in constants.RUN_WAITING_STATUSES:
		if cancel_event is not None and cancel_event.is_set():
			raise RunCancelled(f"Run {run_id} wait cancelled by caller.")

		if _needs_tool_outputs(run):
			pending = _tool_call_ids(run)
			if pending != answered:
				outputs = tools.outputs_for(run)
				logger.info(
					"Run %s requires action: submitting %d tool output(s).",
					run_id,
					len(outputs),
				)
				try:
					runs.submit_tool_outputs(run_id=run_id, thread_id=thread_id, tool_outputs=outputs)
				except Exception as exc:
					logger.error("Error submitting tool outputs for run %s: %s", run_id, exc)
					raise upstream_error(exc) from exc
				answered = pending

		elapsed = clock() - started
		if polls >= policy.max_attempts or elapsed >= policy.timeout_s:
			logger.error("Run %s still %s after %d polls (%.1fs).", run_id, run.status, polls, elapsed)
			raise RunTimedOut(run_id=run_id, polls=polls, elapsed_s=elapsed)

		if cancel_event is not None:
			if cancel_event.wait(policy.interval_s):
				raise RunCancelled(f"Run {run_id} wait cancelled by caller.")
		else:
			sleep(policy.interval_s)

		try:
			run = runs.retrieve(run_id=run_id, thread_id=thread_id)
		except Exception as exc:
			raise upstream_error(exc) from exc
		polls += 1

	if run.status in constants.RUN_FAILURE_STATUSES:
		error = UpstreamRunFailed(run_id=run_id, status=run.status, last_error=_last_error(run))
		logger.error("Run %s on thread %s ended with status %s. %s", run_id, thread_id, run.status, error.details)
		raise error
	return run


def wait_for_settle(
	client: Any,
	*,
	thread_id: str,
	run_id: str,
	policy: PollPolicy = PollPolicy(),
	sleep: Callable[[float], None] = time.sleep,
	clock: Callable[[], float] = time.monotonic,
) -> bool:
	"""Poll a run whose cancellation was requested until it stops being active.

	The thread refuses new runs while one is queued, in progress, awaiting
	tool outputs or cancelling. Returns False when the policy runs out first.
	"""
	runs = client.beta.threads.runs
	started = clock()
	for polls in range(1, policy.max_attempts + 1):
		try:
			run = runs.retrieve(run_id=run_id, thread_id=thread_id)
		except Exception as exc:
			raise upstream_error(exc) from exc
		if run.status not in constants.RUN_ACTIVE_STATUSES:
			return True
		elapsed = clock() - started
		if polls >= policy.max_attempts or elapsed >= policy.timeout_s:
			logger.warning("Run %s still %s after %d polls (%.1fs).", run_id, run.status, polls, elapsed)
			break
		sleep(policy.interval_s)
	return False
