# pizzeria_voice/settings.py
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigError

load_dotenv()

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "restaurant.json"
SUPPORTED_LANGUAGES = ("en", "ur")


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() not in ("0", "false", "no", "")


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)).split()[0])


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)).split()[0])


@dataclass(frozen=True)
class Settings:
    openai_api_key: str
    port: int = 3000
    debug: bool = False
    agent_language: str = "en"

    realtime_url: str = "wss://api.openai.com/v1/realtime"
    realtime_sessions_url: str = "https://api.openai.com/v1/realtime/sessions"
    realtime_model: str = "gpt-4o-realtime-preview-2024-12-17"
    voice_en: str = "nova"
    voice_ur: str = "alloy"

    reconnect_delay_ms: int = 2000
    pending_call_timeout_s: float = 60.0

    # Commit cadence for input_audio_buffer (see audio.AudioCommitBuffer)
    audio_min_buffer_bytes: int = 4096
    audio_min_buffer_ms: int = 500
    audio_commit_every_append: bool = False

    vad_threshold: float = 0.5
    vad_prefix_padding_ms: int = 300
    vad_silence_duration_ms: int = 500

    # Ask the model to speak right after a function result is appended
    auto_response_after_function: bool = False

    catalog_path: Path = DEFAULT_CATALOG_PATH
    log_agent_events: bool = True
    log_tool_maxlen: int = 800

    @classmethod
    def from_env(cls) -> "Settings":
        api_key = (os.getenv("OPENAI_API_KEY") or "").strip()
        if not api_key:
            raise ConfigError("OPENAI_API_KEY is not set; refusing to start.")

        language = os.getenv("AGENT_LANGUAGE", "en").strip().lower()
        if language not in SUPPORTED_LANGUAGES:
            raise ConfigError(f"AGENT_LANGUAGE must be one of {SUPPORTED_LANGUAGES}, got {language!r}")

        return cls(
            openai_api_key=api_key,
            port=_env_int("PORT", 3000),
            debug=_env_flag("DEBUG"),
            agent_language=language,
            realtime_url=os.getenv("REALTIME_URL", cls.realtime_url),
            realtime_sessions_url=os.getenv("REALTIME_SESSIONS_URL", cls.realtime_sessions_url),
            realtime_model=os.getenv("REALTIME_MODEL", cls.realtime_model),
            voice_en=os.getenv("VOICE_EN", cls.voice_en),
            voice_ur=os.getenv("VOICE_UR", cls.voice_ur),
            reconnect_delay_ms=_env_int("RECONNECT_DELAY_MS", 2000),
            pending_call_timeout_s=_env_float("PENDING_CALL_TIMEOUT_S", 60.0),
            audio_min_buffer_bytes=_env_int("AUDIO_MIN_BUFFER_BYTES", 4096),
            audio_min_buffer_ms=_env_int("AUDIO_MIN_BUFFER_MS", 500),
            audio_commit_every_append=_env_flag("AUDIO_COMMIT_EVERY_APPEND"),
            vad_threshold=_env_float("VAD_THRESHOLD", 0.5),
            vad_prefix_padding_ms=_env_int("VAD_PREFIX_PADDING_MS", 300),
            vad_silence_duration_ms=_env_int("VAD_SILENCE_DURATION_MS", 500),
            auto_response_after_function=_env_flag("AUTO_RESPONSE_AFTER_FUNCTION"),
            catalog_path=Path(os.getenv("CATALOG_PATH") or DEFAULT_CATALOG_PATH),
            log_agent_events=_env_flag("LOG_AGENT_EVENTS", "1"),
            log_tool_maxlen=_env_int("LOG_TOOL_MAXLEN", 800),
        )

    def voice_for(self, language: str) -> str:
        return self.voice_ur if language == "ur" else self.voice_en

    def transcription_locale(self, language: str) -> str:
        return "ur" if language == "ur" else "en"

    @property
    def log_level(self) -> str:
        if self.debug:
            return "DEBUG"
        return (os.getenv("LOG_LEVEL") or "INFO").upper()


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
