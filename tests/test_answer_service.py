import threading
from types import SimpleNamespace
from unittest import TestCase

from _fakes import FakeOpenAI, make_settings

from tutor.backend import constants
from tutor.backend.errors import InvalidRequest, RunCancelled, RunTimedOut, UpstreamRunFailed, UpstreamUnreachable
from tutor.backend.services.answer_service import AnswerOrchestrator, extract_reply


_GROUNDED_REPLY = "Diversification spreads risk across uncorrelated assets."[:50].ljust(50, ".")
_FALLBACK_REPLY = "Hello! Ask me anything about investing and markets."


class AnswerOrchestratorTests(TestCase):
	def _orchestrator(self, client, **overrides) -> AnswerOrchestrator:
		return AnswerOrchestrator(client, make_settings(**overrides))

	def test_missing_text_is_rejected_without_upstream_calls(self) -> None:
		for text in (None, "", "   "):
			client = FakeOpenAI()
			with self.assertRaises(InvalidRequest):
				self._orchestrator(client).answer(text)
			self.assertEqual(client.upstream_calls, 0)

	def test_sufficient_grounded_reply_skips_fallback(self) -> None:
		client = FakeOpenAI(replies=[_GROUNDED_REPLY])
		result = self._orchestrator(client).answer("What is diversification?")

		self.assertEqual(len(_GROUNDED_REPLY), 50)
		self.assertEqual(result.text, _GROUNDED_REPLY)
		self.assertTrue(result.grounded_accepted)
		self.assertEqual([a.kind for a in result.attempts], ["grounded"])
		self.assertEqual(len(client.runs.created), 1)
		grounded_run = client.runs.created[0]
		self.assertEqual(grounded_run["tool_choice"], {"type": "file_search"})
		self.assertEqual(grounded_run["assistant_id"], "asst_test")
		self.assertEqual(
			client.beta.threads.created[0]["tool_resources"],
			{"file_search": {"vector_store_ids": ["vs_test"]}},
		)

	def test_empty_grounded_reply_runs_exactly_one_fallback(self) -> None:
		client = FakeOpenAI(replies=["", _FALLBACK_REPLY])
		result = self._orchestrator(client).answer("Hi")

		self.assertEqual(result.text, _FALLBACK_REPLY)
		self.assertFalse(result.grounded_accepted)
		self.assertEqual([a.kind for a in result.attempts], ["grounded", "fallback"])
		self.assertEqual(len(client.runs.created), 2)
		self.assertNotIn("tool_choice", client.runs.created[1])

	def test_short_grounded_reply_triggers_fallback(self) -> None:
		client = FakeOpenAI(replies=["Too short.", _FALLBACK_REPLY])
		result = self._orchestrator(client).answer("Explain beta.")
		self.assertEqual(result.text, _FALLBACK_REPLY)
		self.assertEqual(len(client.runs.created), 2)

	def test_grounded_reply_at_threshold_is_accepted(self) -> None:
		reply = "x" * 20
		client = FakeOpenAI(replies=[reply])
		result = self._orchestrator(client, fallback_reply_min_length=20).answer("Define alpha.")
		self.assertEqual(result.text, reply)
		self.assertEqual(len(client.runs.created), 1)

	def test_fallback_without_extractable_text_returns_placeholder(self) -> None:
		client = FakeOpenAI(replies=["", ""])
		result = self._orchestrator(client).answer("Hi")
		self.assertEqual(result.text, constants.NO_ANSWER_PLACEHOLDER)
		self.assertEqual(len(client.runs.created), 2)

	def test_no_vector_store_skips_grounded_pass(self) -> None:
		client = FakeOpenAI(replies=[_FALLBACK_REPLY])
		result = self._orchestrator(client, vector_store_id=None).answer("What is diversification?")

		self.assertEqual(result.text, _FALLBACK_REPLY)
		self.assertEqual([a.kind for a in result.attempts], ["fallback"])
		self.assertEqual(len(client.runs.created), 1)
		self.assertNotIn("tool_choice", client.runs.created[0])
		self.assertNotIn("tool_resources", client.beta.threads.created[0])

	def test_clarification_is_appended_before_fallback_run(self) -> None:
		client = FakeOpenAI(replies=["", _FALLBACK_REPLY])
		orchestrator = self._orchestrator(
			client,
			fallback_strategy=constants.STRATEGY_RETRY_WITH_CLARIFICATION_PROMPT,
			clarification_prompt="Please answer with more detail.",
		)
		orchestrator.answer("Hi")

		events = [(name, payload) for name, payload in client.log if name in {"message.create", "run.create"}]
		self.assertEqual(
			[name for name, _ in events],
			["message.create", "run.create", "message.create", "run.create"],
		)
		self.assertEqual(events[0][1], "Hi")
		self.assertEqual(events[2][1], "Please answer with more detail.")

	def test_clarification_not_appended_when_grounded_reply_suffices(self) -> None:
		client = FakeOpenAI(replies=[_GROUNDED_REPLY])
		self._orchestrator(
			client,
			fallback_strategy=constants.STRATEGY_RETRY_WITH_CLARIFICATION_PROMPT,
		).answer("What is diversification?")
		self.assertEqual([m["content"] for m in client.messages.created], ["What is diversification?"])

	def test_default_strategy_adds_no_clarification(self) -> None:
		client = FakeOpenAI(replies=["", _FALLBACK_REPLY])
		self._orchestrator(client).answer("Hi")
		self.assertEqual([m["content"] for m in client.messages.created], ["Hi"])

	def test_grounded_run_failure_is_swallowed(self) -> None:
		client = FakeOpenAI(
			replies=["ignored", _FALLBACK_REPLY],
			scripts=[
				[SimpleNamespace(status="failed", required_action=None, last_error={"code": "server_error", "message": "boom"})],
				["completed"],
			],
		)
		result = self._orchestrator(client).answer("What is diversification?")
		self.assertEqual(result.text, _FALLBACK_REPLY)
		self.assertEqual(result.attempts[0].error, "upstream_run_failed")
		self.assertEqual(result.attempts[0].status, "queued")

	def test_grounded_create_error_is_swallowed(self) -> None:
		client = FakeOpenAI(
			replies=[None, _FALLBACK_REPLY],
			run_errors=[UpstreamUnreachable("network down")],
		)
		result = self._orchestrator(client).answer("What is diversification?")
		self.assertEqual(result.text, _FALLBACK_REPLY)
		self.assertEqual([a.kind for a in result.attempts], ["grounded", "fallback"])

	def test_fallback_run_failure_propagates(self) -> None:
		client = FakeOpenAI(replies=["", "unused"], scripts=[["completed"], ["expired"]])
		with self.assertRaises(UpstreamRunFailed) as ctx:
			self._orchestrator(client).answer("Hi")
		self.assertEqual(ctx.exception.status, "expired")
		self.assertEqual(len(client.runs.created), 2)

	def test_grounded_timeout_cancels_run_and_falls_back(self) -> None:
		client = FakeOpenAI(replies=["", _FALLBACK_REPLY], scripts=[["in_progress"], ["completed"]])
		result = self._orchestrator(client, poll_max_attempts=3).answer("What is diversification?")
		self.assertEqual(result.text, _FALLBACK_REPLY)
		self.assertEqual(result.attempts[0].error, "run_timed_out")
		self.assertEqual(client.runs.cancelled, ["run_1"])

	def test_grounded_timeout_waits_for_cancellation_before_fallback(self) -> None:
		client = FakeOpenAI(
			replies=["", _FALLBACK_REPLY],
			scripts=[["in_progress"], ["completed"]],
			cancel_statuses=["cancelling", "cancelling", "cancelled"],
		)
		result = self._orchestrator(client, poll_max_attempts=3).answer("What is diversification?")
		self.assertEqual(result.text, _FALLBACK_REPLY)
		self.assertEqual(len(client.beta.threads.created), 1)
		self.assertEqual(client.runs.created[1]["thread_id"], "thread_1")

	def test_grounded_run_stuck_cancelling_falls_back_on_fresh_thread(self) -> None:
		client = FakeOpenAI(
			replies=["", _FALLBACK_REPLY],
			scripts=[["in_progress"], ["completed"]],
			cancel_statuses=["cancelling"],
		)
		result = self._orchestrator(client, poll_max_attempts=2).answer("What is diversification?")
		self.assertEqual(result.text, _FALLBACK_REPLY)
		self.assertEqual(len(client.beta.threads.created), 2)
		self.assertEqual(client.runs.created[1]["thread_id"], "thread_2")
		fresh = [m for m in client.messages.created if m["thread_id"] == "thread_2"]
		self.assertEqual(fresh, [{"thread_id": "thread_2", "role": "user", "content": "What is diversification?"}])

	def test_fallback_timeout_propagates(self) -> None:
		client = FakeOpenAI(replies=[_FALLBACK_REPLY], scripts=[["in_progress"]])
		with self.assertRaises(RunTimedOut):
			self._orchestrator(client, vector_store_id=None, poll_max_attempts=2).answer("Hi")
		self.assertEqual(client.runs.cancelled, ["run_1"])

	def test_cancelled_request_does_not_fall_back(self) -> None:
		client = FakeOpenAI(scripts=[["in_progress"]])
		cancel_event = threading.Event()
		cancel_event.set()
		with self.assertRaises(RunCancelled):
			self._orchestrator(client).answer("Hi", cancel_event=cancel_event)
		self.assertEqual(len(client.runs.created), 1)
		self.assertEqual(client.runs.cancelled, ["run_1"])

	def test_thread_creation_failure_propagates(self) -> None:
		client = FakeOpenAI(thread_error=UpstreamUnreachable("no route to host"))
		with self.assertRaises(UpstreamUnreachable):
			self._orchestrator(client).answer("Hi")

	def test_user_id_is_stored_as_thread_metadata(self) -> None:
		client = FakeOpenAI(replies=[_GROUNDED_REPLY])
		self._orchestrator(client).answer("What is diversification?", user_id="user-42")
		self.assertEqual(client.beta.threads.created[0]["metadata"], {"user_id": "user-42"})


class SpeechThresholdTests(TestCase):
	def test_short_reply_has_no_audio_and_no_synthesis_call(self) -> None:
		client = FakeOpenAI(replies=["Hi there."])
		orchestrator = AnswerOrchestrator(
			client,
			make_settings(vector_store_id=None, speech_reply_min_length=10),
		)
		result = orchestrator.answer("Hi")
		self.assertEqual(result.text, "Hi there.")
		self.assertIsNone(result.audio)
		self.assertEqual(client.speech_calls, [])

	def test_long_reply_is_synthesized_as_data_uri(self) -> None:
		client = FakeOpenAI(replies=[_GROUNDED_REPLY])
		orchestrator = AnswerOrchestrator(
			client,
			make_settings(voice_model="tts-1", voice_name="sage"),
		)
		result = orchestrator.answer("What is diversification?")
		self.assertTrue(result.audio.startswith("data:audio/mp3;base64,"))
		self.assertEqual(client.speech_calls, [{"model": "tts-1", "voice": "sage", "input": _GROUNDED_REPLY}])

	def test_synthesis_failure_keeps_text_and_drops_audio(self) -> None:
		client = FakeOpenAI(replies=[_GROUNDED_REPLY], speech_error=RuntimeError("tts unavailable"))
		result = AnswerOrchestrator(client, make_settings()).answer("What is diversification?")
		self.assertEqual(result.text, _GROUNDED_REPLY)
		self.assertIsNone(result.audio)
		self.assertEqual(len(client.speech_calls), 1)


class ExtractReplyTests(TestCase):
	def test_newest_user_message_yields_empty_reply(self) -> None:
		messages = SimpleNamespace(
			data=[SimpleNamespace(role="user", content=[SimpleNamespace(text=SimpleNamespace(value="Hi"))])]
		)
		self.assertEqual(extract_reply(messages), "")

	def test_non_text_blocks_are_skipped(self) -> None:
		messages = SimpleNamespace(
			data=[
				SimpleNamespace(
					role="assistant",
					content=[
						SimpleNamespace(type="image_file", text=None),
						SimpleNamespace(type="text", text=SimpleNamespace(value="Answer")),
					],
				)
			]
		)
		self.assertEqual(extract_reply(messages), "Answer")

	def test_empty_listing_yields_empty_reply(self) -> None:
		self.assertEqual(extract_reply(SimpleNamespace(data=[])), "")
