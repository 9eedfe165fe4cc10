"""Main application entry point for LiveDictate."""

import sys
import asyncio
import argparse
import logging
import secrets
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Dict, List, Optional

from pubsub import pub
from rich.console import Console
from rich.panel import Panel

from .config import LiveDictateConfig, CoordinatorSettings
from .audio.audio_pub import AudioPublisher
from .models.audio import EncodedAudioChunk, SAMPLE_RATE, CHANNELS, CHUNK_SAMPLES
from .models.dictionary import User
from .services import IngestionHandlers, SessionCoordinator, TokenAuthenticator
from .storage import FileSessionStore, StaticUserDataStore
from .transcription import AbstractTranscriptionBackend, TranscriptionClient, TranscriptPublisher, TRANSCRIPT_TOPIC

logger = logging.getLogger(__name__)

AUDIO_TOPIC = "audio.chunk"


def apply_overrides(config: LiveDictateConfig, overrides: Optional[Dict[str, Any]]) -> None:
    """Apply command line values on top of the loaded YAML, keyed by dot path."""
    for key_path, value in (overrides or {}).items():
        if value is None:
            continue
        old_value = config.get(key_path)
        config.set(key_path, value)
        logger.info(f"Config override: {key_path} = {value} (was {old_value})")


def prune_old_sessions(store: FileSessionStore, config: LiveDictateConfig) -> int:
    """Delete stored sessions older than ``storage.retention_days``; 0 or unset keeps everything."""
    retention_days = config.get('storage.retention_days')
    if not retention_days:
        return 0
    return store.cleanup_old_sessions(max_age_days=retention_days)


def create_backend(config: LiveDictateConfig) -> AbstractTranscriptionBackend:
    """Build the speech backend named by ``transcription.backend``."""
    backend_name = config.get('transcription.backend', 'openai')
    if backend_name == 'openai':
        from .transcription.openai_backend import OpenAIWhisperBackend
        return OpenAIWhisperBackend(
            api_key=config.get_openai_api_key(),
            model=config.get('openai.model', 'whisper-1'),
            temperature=config.get('openai.temperature', 0.2),
            timeout_seconds=config.get('openai.timeout_seconds', 30.0),
        )
    if backend_name == 'google':
        from .transcription.google_backend import GoogleSpeechBackend
        return GoogleSpeechBackend(
            credentials_path=config.get_google_credentials_path(),
            use_enhanced=config.get('google_cloud.use_enhanced', True),
            enable_automatic_punctuation=config.get('google_cloud.enable_automatic_punctuation', True),
            request_timeout=config.get('google_cloud.request_timeout', 10.0),
        )
    raise ValueError(f"Unknown transcription backend: {backend_name}")


class Server:
    """Records from the microphone and streams it through an in-process coordinator."""

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None,
                 overrides: Optional[Dict[str, Any]] = None):
        # Load configuration
        self.config = LiveDictateConfig(config_path)
        # Command line level wins over the config
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        apply_overrides(self.config, overrides)
        self.console = Console()
        self.session_id: Optional[str] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending_posts: List[Future] = []

    def init(self, user_id: str) -> None:
        logger.info("Initializing services...")

        self.backend = create_backend(self.config)
        self.transcription_client = TranscriptionClient(
            self.backend,
            max_retries=self.config.get('transcription.max_retries', 2),
            backoff_base_seconds=self.config.get('transcription.backoff_base_seconds', 1.0),
        )
        self.store = FileSessionStore(self.config.get_data_directory())
        prune_old_sessions(self.store, self.config)
        self.user_data = StaticUserDataStore.from_config(self.config)
        self.transcript_publisher = TranscriptPublisher(TRANSCRIPT_TOPIC)
        self.coordinator = SessionCoordinator(
            self.store,
            self.user_data,
            self.transcription_client,
            settings=CoordinatorSettings.from_config(self.config),
            on_transcript=self.transcript_publisher.get_callback(),
        )

        # The CLI is its own client: one throwaway token for the local user
        self.token = secrets.token_hex(16)
        self.handlers = IngestionHandlers(self.coordinator, TokenAuthenticator({self.token: User(id=user_id)}))

        sample_rate = self.config.get('audio.sample_rate', SAMPLE_RATE)
        chunk_size = self.config.get('audio.chunk_size', CHUNK_SAMPLES)
        channels = self.config.get('audio.channels', CHANNELS)
        logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")

        # Imported here so the rest of the package works without PortAudio
        from .audio.capture import AudioCapture
        self.audio_publisher = AudioPublisher(AUDIO_TOPIC)
        self.audio_capture = AudioCapture(
            callback=self.audio_publisher.publish_audio_chunk,
            sample_rate=sample_rate,
            chunk_size=chunk_size,
            channels=channels,
        )

        pub.subscribe(self._on_audio_chunk, AUDIO_TOPIC)
        pub.subscribe(self._on_transcript, TRANSCRIPT_TOPIC)

    def _on_audio_chunk(self, chunk: EncodedAudioChunk) -> None:
        """Runs on the capture thread; hands the chunk to the event loop."""
        if self._loop is None or self.session_id is None:
            logger.warning(f"Dropping audio chunk {chunk.sequence_number}: no active session")
            return
        future = asyncio.run_coroutine_threadsafe(self._post_chunk(chunk), self._loop)
        self._pending_posts.append(future)

    async def _post_chunk(self, chunk: EncodedAudioChunk) -> None:
        response = await self.handlers.post_chunk(self.token, self.session_id, chunk.to_payload())
        if response.status != 200:
            logger.warning(f"Chunk {chunk.sequence_number} rejected with {response.status}: {response.body}")

    def _on_transcript(self, session_id: str, text: str, transcript: str) -> None:
        self.console.print(f"[dim]{session_id}[/dim] {text}")

    async def run(self, duration: int, title: Optional[str] = None) -> Optional[str]:
        """Record for ``duration`` seconds and return the final transcript."""
        self._loop = asyncio.get_running_loop()
        await self.backend.initialize()
        try:
            response = await self.handlers.start(self.token, {"title": title})
            if response.status != 201:
                raise RuntimeError(f"Could not start session: {response.body.get('error')}")
            self.session_id = response.body["sessionId"]
            self.console.print(f"🎙️  Recording session {self.session_id} for {duration}s "
                               f"(model: {response.body['model']})", style="bold green")

            self.audio_capture.start_recording()
            await asyncio.sleep(duration)
            # Joins the capture thread, which emits the last chunk
            await asyncio.to_thread(self.audio_capture.stop_recording)

            if self._pending_posts:
                await asyncio.gather(*[asyncio.wrap_future(f) for f in self._pending_posts])
            # Joins the finalize started by the last chunk, or no-ops after it
            await self.handlers.complete(self.token, self.session_id)

            response = await self.handlers.get_session(self.token, self.session_id)
            if response.status != 200:
                raise RuntimeError(f"Could not read session: {response.body.get('error')}")
            return response.body["session"]["content"]
        finally:
            await self.coordinator.shutdown()
            await self.backend.cleanup()

    def print_summary(self, transcript: Optional[str]) -> None:
        stats = self.audio_capture.get_recording_stats()
        self.console.print(Panel(
            transcript or "[dim](no speech transcribed)[/dim]",
            title=f"Final transcript - {self.session_id}",
            subtitle=f"{stats.total_chunks} chunks, {stats.duration_seconds:.1f}s",
        ))


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/livedictate.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Keep the console for transcripts
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("LiveDictate starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for LiveDictate."""
    parser = argparse.ArgumentParser(description="LiveDictate - live microphone transcription")

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: looks for livedictate.yaml)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: logging.level from config, else INFO)"
    )

    parser.add_argument(
        "--duration",
        type=int,
        default=10,
        help="Recording duration in seconds (default: 10)"
    )

    parser.add_argument(
        "--user",
        type=str,
        default="local",
        help="User id whose settings and dictionary apply (default: local)"
    )

    parser.add_argument(
        "--title",
        type=str,
        help="Session title (default: 'Session #<n>')"
    )

    parser.add_argument(
        "--backend",
        type=str,
        choices=["openai", "google"],
        help="Speech backend (default: transcription.backend from config)"
    )

    parser.add_argument(
        "--retention-days",
        type=int,
        help="Delete stored sessions older than this many days before recording"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="LiveDictate v0.1.0"
    )

    args = parser.parse_args()

    try:
        overrides = {
            'transcription.backend': args.backend,
            'storage.retention_days': args.retention_days,
        }
        server = Server(args.config, args.log_level, overrides)
        server.init(args.user)
        transcript = asyncio.run(server.run(args.duration, args.title))
        server.print_summary(transcript)
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
