"""Tag reading from audio files."""
