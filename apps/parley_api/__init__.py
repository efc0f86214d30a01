"""
HTTP and WebSocket surface for the Parley room runtime.

``create_app`` wires the room registry, the SQLite recorder and the event
broadcaster into a FastAPI application.
"""

from .simulation import SimulationAPI

__all__ = ["SimulationAPI"]
