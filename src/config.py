from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """
    Application configuration with environment variable support.
    All settings can be overridden via environment variables or .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra fields in .env
    )

    # =========================================================================
    # Discord Configuration
    # =========================================================================
    discord_token: str  # REQUIRED: Your Discord bot token

    # Seconds to wait for a voice connection to become ready
    voice_connect_timeout: float = 20.0

    # =========================================================================
    # Relay Routing Configuration
    # =========================================================================
    # Pin the bot to a single voice channel (unset = follow any channel)
    voice_channel: Optional[int] = None

    # Plain text channel that receives every transcript line
    send_channel: Optional[int] = None

    # Text channel in which per-session threads are opened
    thread_channel: Optional[int] = None

    # Existing thread to reuse instead of opening one per session
    send_thread: Optional[int] = None

    # Add speakers to the session thread as members
    invite_thread_on_speaking: bool = False

    # Prefix each transcript with the time elapsed since the session started
    enable_elapsed_time: bool = False

    # Auto-archive duration for created threads (60, 1440, 4320 or 10080)
    thread_auto_archive_minutes: int = 60

    # =========================================================================
    # Transcription Configuration
    # =========================================================================
    # whisper or vosk
    transcription_provider: str = "whisper"

    # Transcripts below this confidence are discarded
    recognition_min_confidence: float = 0.3

    # Model size: tiny, base, small, medium, large-v2, large-v3
    whisper_model: str = "base"

    # Device: cuda or cpu
    whisper_device: str = "cpu"

    # Compute type: float16, int8, int8_float16
    whisper_compute_type: str = "int8"

    # Language hint (unset = autodetect)
    whisper_language: Optional[str] = "en"

    # Enable/disable voice activity detection (filters silence)
    whisper_vad_enabled: bool = True

    # Minimum silence duration in ms for VAD
    whisper_vad_min_silence_ms: int = 500

    # Path to Vosk model directory
    # Download models from: https://alphacephei.com/vosk/models
    vosk_model_path: str = "models/vosk-model-small-en-us-0.15"

    # =========================================================================
    # Audio Capture Configuration
    # =========================================================================
    # Discord's native sample rate (don't change unless you know what you're doing)
    audio_sample_rate: int = 48000

    # Seconds without voice packets before an utterance is considered complete
    audio_silence_threshold: float = 1.0

    # Hard cap on a single utterance (seconds)
    audio_max_utterance: float = 30.0

    # Minimum audio duration to transcribe (seconds)
    audio_min_duration: float = 0.5

    # RMS floor below which a capture counts as silence
    audio_min_rms: float = 0.02

    # Directory for temporary recordings (unset = system temp dir)
    recording_dir: Optional[str] = None

    # =========================================================================
    # Logging Configuration
    # =========================================================================
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: str = "bot.log"
    log_to_file: bool = True

    @property
    def thread_routing_enabled(self) -> bool:
        """Whether transcripts should be posted into a session thread."""
        return self.thread_channel is not None


settings = Settings()
