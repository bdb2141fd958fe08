"""Configuration constants for the pathmux server."""

HOST: str = "127.0.0.1"
PORT: int = 8080
BUFFER_SIZE: int = 1024
READ_CHUNK_SIZE: int = 4096
SOCKET_TIMEOUT_SECS: int = 5
KEEPALIVE_TIMEOUT_SECS: int = 5
MAX_KEEPALIVE_REQUESTS: int = 100
MAX_REQUEST_BYTES: int = 1_048_576
MAX_HEADER_BYTES: int = 16_384
MAX_BODY_BYTES: int = 524_288
MAX_TARGET_LENGTH: int = 8_192
WORKER_COUNT: int = 8
REQUEST_QUEUE_SIZE: int = 64
LOG_FORMAT: str = "plain"
SERVER_NAME: str = "pathmux/0.1"
