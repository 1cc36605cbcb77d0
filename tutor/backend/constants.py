APP_NAME = "Tutor Voice Relay"
APP_VERSION = "1.0.0"
DEFAULT_CORS_ALLOW_ORIGINS = [
	"http://localhost",
	"http://127.0.0.1",
	"http://localhost:3000",
	"http://localhost:5173",
]
DEFAULT_TRUSTED_HOSTS = ("*",)

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_ENVIRONMENT = "development"
DEFAULT_LOG_LEVEL = "INFO"

DEFAULT_FALLBACK_REPLY_MIN_LENGTH = 20
DEFAULT_SPEECH_REPLY_MIN_LENGTH = 10

STRATEGY_RETRY_NO_ADDITIONAL_PROMPT = "RETRY_NO_ADDITIONAL_PROMPT"
STRATEGY_RETRY_WITH_CLARIFICATION_PROMPT = "RETRY_WITH_CLARIFICATION_PROMPT"
FALLBACK_STRATEGIES = (
	STRATEGY_RETRY_NO_ADDITIONAL_PROMPT,
	STRATEGY_RETRY_WITH_CLARIFICATION_PROMPT,
)
DEFAULT_CLARIFICATION_PROMPT = (
	"The previous answer was not detailed enough. Please try answering again using your "
	"broader knowledge and context from our conversation so far."
)
NO_ANSWER_PLACEHOLDER = "No useful answer from fallback."

DEFAULT_VOICE_MODEL = "tts-1"
DEFAULT_VOICE_NAME = "sage"
AUDIO_DATA_URI_PREFIX = "data:audio/mp3;base64,"

DEFAULT_REALTIME_MODEL = "gpt-4o-mini-realtime-preview"
DEFAULT_REALTIME_VOICE = "sage"
REALTIME_SESSIONS_URL = "https://api.openai.com/v1/realtime/sessions"
TOKEN_RESPONSE_MODES = ("compact", "raw")

DEFAULT_OPENAI_TIMEOUT_S = 30.0
DEFAULT_POLL_INTERVAL_S = 1.0
DEFAULT_POLL_MAX_ATTEMPTS = 120
DEFAULT_RUN_TIMEOUT_S = 90.0

RUN_WAITING_STATUSES = frozenset({"queued", "in_progress", "requires_action"})
RUN_FAILURE_STATUSES = frozenset({"failed", "expired", "cancelled"})
RUN_ACTIVE_STATUSES = RUN_WAITING_STATUSES | {"cancelling"}

DIST_DIR_CANDIDATE = "dist/client"
