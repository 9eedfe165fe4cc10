"""Transcript publisher module for pub/sub event publishing."""

import logging
from typing import Callable
from pubsub import pub

logger = logging.getLogger(__name__)

TRANSCRIPT_TOPIC = "transcript.updated"


class TranscriptPublisher:
    """Publishes accepted transcript segments using pubsub.pub."""

    def __init__(self, topic: str = TRANSCRIPT_TOPIC):
        """Initialize transcript publisher.

        Args:
            topic: Pub/sub topic name for transcript updates
        """
        self.topic = topic
        logger.info(f"TranscriptPublisher initialized with topic: {topic}")

    def publish_transcript_update(self, session_id: str, text: str, transcript: str) -> None:
        """Publish one accepted segment.

        Args:
            session_id: Session the segment belongs to
            text: The newly appended segment
            transcript: Full transcript after the append
        """
        pub.sendMessage(self.topic, session_id=session_id, text=text, transcript=transcript)
        logger.debug(f"Published transcript update for {session_id}: {len(transcript)} chars")

    def get_callback(self) -> Callable[[str, str, str], None]:
        """Get callback function for the coordinator to use."""
        return self.publish_transcript_update
