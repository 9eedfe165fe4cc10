"""LiveDictate: live microphone transcription sessions with incremental flushes."""

__version__ = "0.1.0"
