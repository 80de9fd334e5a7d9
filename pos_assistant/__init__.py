"""Conversational point-of-sale assistant: persona prompts, model gateway, and tool dispatch."""

__version__ = "0.1.0"
