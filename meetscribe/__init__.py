"""
MeetScribe - Live two-channel meeting transcription.

This package provides:
- Periodic chunk rotation while recording (mic + system audio)
- Parallel whisper transcription of both channels per chunk
- Timestamp merging with cross-channel echo removal
- Filtering of whisper non-speech artifacts
- A bounded live transcript for the overlay preview

Main entry point: python -m meetscribe
"""

__version__ = "1.0.0"
