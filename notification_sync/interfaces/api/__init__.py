"""Local HTTP/websocket surface for UI consumers."""
