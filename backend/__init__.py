"""FastAPI backend exposing one EditorSession over REST and WebSocket."""
