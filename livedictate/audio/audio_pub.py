"""Audio publisher module for pub/sub event publishing."""

import logging
from pubsub import pub
from ..models.audio import EncodedAudioChunk

logger = logging.getLogger(__name__)


class AudioPublisher:
    """Publishes encoded audio chunks using pubsub.pub."""

    def __init__(self, topic: str = "audio.chunk"):
        """Initialize audio publisher.

        Args:
            topic: Pub/sub topic name for audio chunks
        """
        self.topic = topic
        logger.info(f"AudioPublisher initialized with topic: {topic}")

    def publish_audio_chunk(self, chunk: EncodedAudioChunk) -> None:
        """Publish an encoded chunk to the pub/sub topic.

        Args:
            chunk: EncodedAudioChunk to publish
        """
        pub.sendMessage(self.topic, chunk=chunk)
