# =============================================================================
# BNC Python SDK -- Protocol Constants
# =============================================================================

DEFAULT_API_URL = "wss://api.blocknative.com/v0"
DEFAULT_SYSTEM = "ethereum"
DEFAULT_NAME = "unknown"
LOCAL_NETWORK = "local"

# -- Outbound queue ------------------------------------------------------------

QUEUE_LIMIT = 10_000

# -- Rate limiting -------------------------------------------------------------

DEFAULT_RATE_LIMIT_POINTS = 150
DEFAULT_RATE_LIMIT_DURATION = 1.0  # seconds

# -- Timing (seconds) --------------------------------------------------------

SEND_SETTLE_DELAY = 0.001  # lets a pending rate-limit response land first
CONNECT_SETTLE_DELAY = 0.1
PING_TIMEOUT = 30.0 + 1.0  # server ping interval + latency allowance
CONNECTION_TIMEOUT = 10.0
CLOSE_TIMEOUT = 5.0

# -- Reconnection -------------------------------------------------------------

RECONNECT_BASE_DELAY = 1.0
RECONNECT_MAX_DELAY = 30.0
RECONNECT_MAX_ATTEMPTS = -1  # -1 = infinite
RECONNECT_FACTOR = 1.5
RECONNECT_ABSOLUTE_CAP = 300.0  # 5 minutes

# -- Messages ------------------------------------------------------------------

MAX_MESSAGE_SIZE = 1_048_576  # 1 MB

# -- WebSocket close codes -----------------------------------------------------

WS_CLOSE_NORMAL = 1000
WS_CLOSE_ABNORMAL = 1006

# -- Envelope codes ------------------------------------------------------------

CATEGORY_INITIALIZE = "initialize"
CATEGORY_ACTIVE_TRANSACTION = "activeTransaction"
CATEGORY_ACCOUNT_ADDRESS = "accountAddress"

EVENT_CHECK_DAPP_ID = "checkDappId"
EVENT_WATCH = "watch"
EVENT_UNWATCH = "unwatch"
EVENT_TX_SENT = "txSent"
EVENT_ALL = "all"

# Event codes the server sends back when it only echoes a request the
# client itself made.
SERVER_ECHO_EVENT_CODES = frozenset(
    {
        "txRequest",
        "nsfFail",
        "txRepeat",
        "txAwaitingApproval",
        "txConfirmReminder",
        "txSendFail",
        "txError",
        "txUnderPriced",
    }
)

# Event codes after which a watched transaction continues under a new hash.
HASH_CHANGE_EVENT_CODES = frozenset({"txSpeedUp", "txCancel"})

UNSUBSCRIBED_STATUS = "unsubscribed"

# -- Network names -------------------------------------------------------------

NETWORK_NAMES: dict[str, dict[int, str]] = {
    "ethereum": {
        1: "main",
        3: "ropsten",
        4: "rinkeby",
        5: "goerli",
        42: "kovan",
        56: "bsc-main",
        100: "xdai",
        137: "matic-main",
        250: "fantom-main",
        4002: "fantom-testnet",
        80001: "matic-mumbai",
    },
    "bitcoin": {
        1: "main",
        2: "testnet",
    },
}


def network_name(system: str, network_id: int) -> str | None:
    """Server-side name of ``network_id`` on ``system``, or ``None``."""
    return NETWORK_NAMES.get(system, {}).get(network_id)
