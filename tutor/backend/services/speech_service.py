from __future__ import annotations

import base64
import logging
from typing import Any

from tutor.backend import constants
from tutor.backend.errors import SynthesisFailed


logger = logging.getLogger(__name__)


def to_data_uri(audio: bytes) -> str:
	return constants.AUDIO_DATA_URI_PREFIX + base64.b64encode(audio).decode("ascii")


class SpeechSynthesizer:
	def __init__(self, client: Any, *, model: str, voice: str):
		self._client = client
		self.model = model
		self.voice = voice

	def synthesize(self, text: str) -> str:
		logger.info("Generating speech (%d chars, model=%s, voice=%s).", len(text), self.model, self.voice)
		try:
			response = self._client.audio.speech.create(model=self.model, voice=self.voice, input=text)
			audio = response.content
		except Exception as exc:
			raise SynthesisFailed("Speech generation failed.", details=str(exc)) from exc
		if not audio:
			raise SynthesisFailed("Speech generation returned no audio.")
		return to_data_uri(audio)
