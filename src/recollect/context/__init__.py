"""Context module - composes recalled memories and session history for prompts."""
