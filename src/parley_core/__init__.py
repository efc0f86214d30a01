"""
Core backend primitives for the Parley runtime.

Modules under ``parley_core`` provide shared infrastructure (LLM clients,
session persistence, settings) for the room orchestration layer and APIs.
"""

__all__ = ["llm", "session_store", "settings"]
