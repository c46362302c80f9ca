"""HTTP adapters for the external workflow engine."""

from flowcanvas.client.engine_client import EngineClient

__all__ = ["EngineClient"]
