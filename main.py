import asyncio
import logging
import sys
import argparse

from src.config import settings
from src.bot.client import VoiceRelayBot
from src.providers.interfaces import ITranscriptionProvider
from src.providers.recorder import WaveRecorder
from src.services.user_resolver import UserResolver
from src.services.thread_manager import SessionThreadManager
from src.services.message_router import MessageRouter
from src.services.speaking_tracker import SpeakingTracker
from src.services.presence_controller import VoicePresenceController

# Setup logging
# Configure logging with UTF-8 encoding for Windows compatibility
log_format = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

stream_handler = logging.StreamHandler(sys.stdout)
stream_handler.setLevel(getattr(logging, settings.log_level))
stream_handler.setFormatter(log_format)
handlers = [stream_handler]

if settings.log_to_file:
    file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
    file_handler.setLevel(getattr(logging, settings.log_level))
    file_handler.setFormatter(log_format)
    handlers.append(file_handler)

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    handlers=handlers
)

logger = logging.getLogger(__name__)


class Application:
    """Main application class."""

    def __init__(self, provider_choice: str = None):
        self.bot = None
        self.provider_choice = (provider_choice or settings.transcription_provider).lower()

    def create_transcription_provider(self) -> ITranscriptionProvider:
        if self.provider_choice == 'vosk':
            from src.providers.vosk_provider import VoskProvider
            logger.info("Using Vosk transcription provider")
            return VoskProvider()

        from src.providers.whisper_provider import WhisperProvider
        logger.info("Using Whisper transcription provider")
        return WhisperProvider()

    def create_dependencies(self) -> VoiceRelayBot:
        """Create all dependencies with dependency injection."""
        logger.info("Creating dependencies...")

        bot = VoiceRelayBot()

        thread_manager = SessionThreadManager(bot)
        message_router = MessageRouter(bot, thread_manager)
        speaking_tracker = SpeakingTracker(
            recorder=WaveRecorder(),
            transcription_provider=self.create_transcription_provider(),
            user_resolver=UserResolver(bot),
            message_router=message_router
        )
        presence_controller = VoicePresenceController(
            client=bot,
            speaking_tracker=speaking_tracker,
            thread_manager=thread_manager
        )
        bot.attach(presence_controller, speaking_tracker)

        self.bot = bot
        logger.info("Dependencies created")
        return bot

    async def run(self):
        """Run the application."""
        try:
            bot = self.create_dependencies()

            logger.info("Starting bot...")
            await bot.start(settings.discord_token)

        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        except Exception as e:
            logger.error(f"Error running application: {e}", exc_info=True)
            raise
        finally:
            if self.bot and not self.bot.is_closed():
                await self.bot.close()

            logger.info("Application shutdown complete")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Voice Relay - Transcribe Discord voice channels into text channels and threads',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Transcription Providers:
  whisper  - faster-whisper (high accuracy, GPU recommended)
  vosk     - Vosk (fast, CPU-friendly)

Examples:
  python main.py --provider whisper
  python main.py --provider vosk
  python main.py  (uses TRANSCRIPTION_PROVIDER, default whisper)
        """
    )
    parser.add_argument(
        '--provider',
        type=str,
        choices=['whisper', 'vosk'],
        default=None,
        help='Transcription provider to use (default: TRANSCRIPTION_PROVIDER setting)'
    )

    args = parser.parse_args()
    provider = (args.provider or settings.transcription_provider).lower()

    logger.info("=" * 70)
    logger.info("Voice Relay Starting")
    logger.info("=" * 70)
    logger.info(f"Transcription Provider: {provider.upper()}")

    if provider == 'whisper':
        logger.info(f"Whisper Model: {settings.whisper_model}")
        logger.info(f"Whisper Device: {settings.whisper_device}")
        logger.info(f"Whisper Compute Type: {settings.whisper_compute_type}")
        logger.info(f"Whisper VAD Enabled: {settings.whisper_vad_enabled}")
    else:
        logger.info(f"Vosk Model Path: {settings.vosk_model_path}")
    logger.info(f"Silence Threshold: {settings.audio_silence_threshold}s")
    logger.info(f"Min Confidence: {settings.recognition_min_confidence}")
    logger.info(f"Log Level: {settings.log_level}")

    logger.info("Routing:")
    logger.info(f"  - Pinned voice channel: {settings.voice_channel or 'any'}")
    logger.info(f"  - Send channel: {settings.send_channel or 'disabled'}")
    logger.info(f"  - Thread channel: {settings.thread_channel or 'disabled'}")
    logger.info(f"  - Reused thread: {settings.send_thread or 'none'}")
    logger.info(f"  - Invite speakers to thread: {settings.invite_thread_on_speaking}")
    logger.info(f"  - Elapsed time prefix: {settings.enable_elapsed_time}")

    logger.info("=" * 70)

    app = Application(provider_choice=provider)

    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
