"""Service layer for the narration backend."""
