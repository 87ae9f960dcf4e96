"""Core: configuration, shared types, exceptions and the backing store."""
