# =============================================================================
# BNC Python SDK -- Package Logger
# =============================================================================

import logging

logger = logging.getLogger("bnc_sdk")
