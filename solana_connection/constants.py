"""Constants shared across the Solana connection package."""

# Cluster timing
NUM_TICKS_PER_SECOND = 160
DEFAULT_TICKS_PER_SLOT = 64

# Roughly half a slot, in seconds
BLOCKHASH_POLL_INTERVAL = (500 * DEFAULT_TICKS_PER_SLOT / NUM_TICKS_PER_SECOND) / 1000

# Blockhash cache
BLOCKHASH_VALIDITY_SECONDS = 30
BLOCKHASH_MAX_POLLS = 50

# Endpoints
DEFAULT_RPC_URL = "http://localhost:8899"
DEFAULT_WS_PORT = 8900
DEFAULT_WSS_PORT = 8901

# WebSocket close code sent on idle teardown
WS_NORMAL_CLOSURE = 1000
WS_INTERNAL_ERROR = 1011

VALID_COMMITMENTS = (
    "max",
    "recent",
    "root",
    "single",
    "processed",
    "confirmed",
    "finalized",
)
