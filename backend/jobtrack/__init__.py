"""JobTrack resume parsing service."""
