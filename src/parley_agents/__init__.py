"""
Agent-facing primitives for the Parley runtime.

The rooms layer builds on top of ``parley_core`` clients and storage to run
paced, multi-turn conversations between generated agents.
"""

__all__ = ["rooms"]
