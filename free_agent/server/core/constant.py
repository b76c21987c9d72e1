"""Server-wide constants."""

PROJECT_NAME = "Free Agent"
API_V1_STR = "/api/v1"

# Seconds between keep-alive messages on an idle event stream.
SSE_KEEPALIVE_SECONDS = 15.0
# Idle keep-alive cycles after which an event stream is closed.
SSE_MAX_IDLE_CYCLES = 240
