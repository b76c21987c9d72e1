"""FastAPI server exposing the Free Agent session commands and event stream."""
