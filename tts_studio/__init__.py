"""Text-to-speech studio backed by the ElevenLabs API."""

__version__ = "0.1.0"
