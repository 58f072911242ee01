"""Infrastructure adapters: persistence API, push channel and websocket fan-out."""
