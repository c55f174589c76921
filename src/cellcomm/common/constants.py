"""
cellcomm Constants Module
Protocol constants and configuration values.
"""

# Frame structure sizes
LENGTH_PREFIX_SIZE = 4
CELL_SIZE = 22  # 18 bytes of fields + 4 bytes zero padding
HANDSHAKE_SIZE = 8  # session id (2) + unused (6)

# Frame limits
MAX_FRAME_SIZE = 16 * 1024 * 1024  # 16 MB default max frame

# Identifier and payload ranges (upper bounds exclusive)
SESSION_ID_BOUND = 0x7FFF
PAYLOAD_BOUND = 0x7FFFFFFF

# end_connection flag values
CELL_ORDINARY = 0
CELL_TERMINATE = 1

# Timeouts (in seconds)
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_ACCEPT_TIMEOUT = 0.5
DEFAULT_JOIN_TIMEOUT = 5.0

# Server configuration
DEFAULT_PORT = 4207
DEFAULT_LISTEN_BACKLOG = 128
DEFAULT_OUTPUT_DIR = "output"

# SOCKS proxy (Tor's default SOCKS port)
DEFAULT_PROXY_HOST = "127.0.0.1"
DEFAULT_PROXY_PORT = 9050

# Client duration limits (in seconds)
MAX_DURATION = 86400  # one day
