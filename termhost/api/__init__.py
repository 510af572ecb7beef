"""API module - FastAPI host and WebSocket windows."""
