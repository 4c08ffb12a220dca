"""Domain models for gateway requests, responses and feedback."""
