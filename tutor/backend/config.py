from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

from tutor.backend import constants
from tutor.backend.errors import ConfigurationError


_BUNDLED_FRONTEND_DIR = Path(__file__).resolve().parents[1] / "frontend"


@dataclass(frozen=True)
class Settings:
	api_key: str
	assistant_id: str
	vector_store_id: Optional[str] = None
	fallback_reply_min_length: int = constants.DEFAULT_FALLBACK_REPLY_MIN_LENGTH
	speech_reply_min_length: int = constants.DEFAULT_SPEECH_REPLY_MIN_LENGTH
	fallback_strategy: str = constants.STRATEGY_RETRY_NO_ADDITIONAL_PROMPT
	clarification_prompt: str = constants.DEFAULT_CLARIFICATION_PROMPT
	voice_model: str = constants.DEFAULT_VOICE_MODEL
	voice_name: str = constants.DEFAULT_VOICE_NAME
	realtime_model: str = constants.DEFAULT_REALTIME_MODEL
	realtime_voice: str = constants.DEFAULT_REALTIME_VOICE
	token_response_mode: str = "compact"
	poll_interval_s: float = constants.DEFAULT_POLL_INTERVAL_S
	poll_max_attempts: int = constants.DEFAULT_POLL_MAX_ATTEMPTS
	run_timeout_s: float = constants.DEFAULT_RUN_TIMEOUT_S
	openai_timeout_s: float = constants.DEFAULT_OPENAI_TIMEOUT_S
	host: str = constants.DEFAULT_HOST
	port: int = constants.DEFAULT_PORT
	environment: str = constants.DEFAULT_ENVIRONMENT
	frontend_dist_dir: Path = _BUNDLED_FRONTEND_DIR
	dev_server_url: Optional[str] = None
	log_level: str = constants.DEFAULT_LOG_LEVEL
	trusted_hosts: Tuple[str, ...] = constants.DEFAULT_TRUSTED_HOSTS

	@property
	def is_production(self) -> bool:
		return self.environment == "production"

	@property
	def grounded_pass_enabled(self) -> bool:
		return bool(self.vector_store_id)

	@property
	def injects_clarification(self) -> bool:
		return (
			self.fallback_strategy == constants.STRATEGY_RETRY_WITH_CLARIFICATION_PROMPT
			and bool(self.clarification_prompt)
		)


def _str_env(env: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
	raw = env.get(name, "").strip()
	return raw or default


def _int_env(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
	raw = env.get(name, "").strip()
	if not raw:
		return default
	try:
		value = int(raw)
	except ValueError as exc:
		raise ConfigurationError(f"{name} must be an integer.") from exc
	if value < minimum:
		raise ConfigurationError(f"{name} must be at least {minimum}.")
	return value


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
	raw = env.get(name, "").strip()
	if not raw:
		return default
	try:
		value = float(raw)
	except ValueError as exc:
		raise ConfigurationError(f"{name} must be numeric.") from exc
	if value <= 0:
		raise ConfigurationError(f"{name} must be greater than zero.")
	return value


def _list_env(env: Mapping[str, str], name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
	items = tuple(part.strip() for part in env.get(name, "").split(",") if part.strip())
	return items or default


def _choice_env(env: Mapping[str, str], name: str, default: str, choices) -> str:
	value = _str_env(env, name, default)
	if value not in choices:
		raise ConfigurationError(f"{name} must be one of: {', '.join(choices)}.")
	return value


def _frontend_dist_dir(env: Mapping[str, str]) -> Path:
	configured = _str_env(env, "FRONTEND_DIST_DIR")
	if configured:
		return Path(configured).resolve()
	candidate = Path(constants.DIST_DIR_CANDIDATE).resolve()
	if candidate.is_dir():
		return candidate
	return _BUNDLED_FRONTEND_DIR


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
	env = os.environ if environ is None else environ

	api_key = _str_env(env, "OPENAI_API_KEY")
	if not api_key:
		raise ConfigurationError("OPENAI_API_KEY is not defined in your environment variables.")
	assistant_id = _str_env(env, "OPENAI_ASSISTANT_ID")
	if not assistant_id:
		raise ConfigurationError("OPENAI_ASSISTANT_ID is not defined in your environment variables.")

	environment = (_str_env(env, "APP_ENV") or _str_env(env, "NODE_ENV") or constants.DEFAULT_ENVIRONMENT).lower()

	return Settings(
		api_key=api_key,
		assistant_id=assistant_id,
		vector_store_id=_str_env(env, "OPENAI_VECTOR_STORE_ID"),
		fallback_reply_min_length=_int_env(
			env, "FALLBACK_REPLY_MIN_LENGTH", constants.DEFAULT_FALLBACK_REPLY_MIN_LENGTH
		),
		speech_reply_min_length=_int_env(
			env, "SPEECH_REPLY_MIN_LENGTH", constants.DEFAULT_SPEECH_REPLY_MIN_LENGTH
		),
		fallback_strategy=_choice_env(
			env,
			"FALLBACK_STRATEGY",
			constants.STRATEGY_RETRY_NO_ADDITIONAL_PROMPT,
			constants.FALLBACK_STRATEGIES,
		),
		clarification_prompt=_str_env(
			env, "FALLBACK_CLARIFICATION_PROMPT", constants.DEFAULT_CLARIFICATION_PROMPT
		),
		voice_model=_str_env(env, "VOICE_MODEL", constants.DEFAULT_VOICE_MODEL),
		voice_name=_str_env(env, "VOICE_NAME", constants.DEFAULT_VOICE_NAME),
		realtime_model=_str_env(env, "REALTIME_MODEL_NAME", constants.DEFAULT_REALTIME_MODEL),
		realtime_voice=_str_env(env, "REALTIME_VOICE", constants.DEFAULT_REALTIME_VOICE),
		token_response_mode=_choice_env(
			env, "REALTIME_TOKEN_RESPONSE", "compact", constants.TOKEN_RESPONSE_MODES
		),
		poll_interval_s=_float_env(env, "RUN_POLL_INTERVAL_S", constants.DEFAULT_POLL_INTERVAL_S),
		poll_max_attempts=_int_env(
			env, "RUN_POLL_MAX_ATTEMPTS", constants.DEFAULT_POLL_MAX_ATTEMPTS, minimum=1
		),
		run_timeout_s=_float_env(env, "RUN_TIMEOUT_S", constants.DEFAULT_RUN_TIMEOUT_S),
		openai_timeout_s=_float_env(env, "OPENAI_TIMEOUT_S", constants.DEFAULT_OPENAI_TIMEOUT_S),
		host=_str_env(env, "HOST", constants.DEFAULT_HOST),
		port=_int_env(env, "PORT", constants.DEFAULT_PORT, minimum=1),
		environment=environment,
		frontend_dist_dir=_frontend_dist_dir(env),
		dev_server_url=_str_env(env, "VITE_DEV_SERVER_URL"),
		log_level=(_str_env(env, "LOG_LEVEL", constants.DEFAULT_LOG_LEVEL) or "INFO").upper(),
		trusted_hosts=_list_env(env, "TRUSTED_HOSTS", constants.DEFAULT_TRUSTED_HOSTS),
	)
