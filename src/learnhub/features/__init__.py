"""Feature request types and their cache key schemas."""
