# =============================================================================
# core/services/fee_service.py - Marketplace Platform Fee
# =============================================================================
# The platform keeps a percentage (in basis points) of every marketplace
# sale as the Stripe application fee.
# =============================================================================

from app.config import settings
from lib.utils import round_half_up

DEFAULT_PLATFORM_FEE_BPS = 300


def platform_fee_bps() -> int:
    """Configured fee in basis points (300 = 3%)."""
    bps = settings.CCA_PLATFORM_FEE_BPS
    return bps if bps >= 0 else DEFAULT_PLATFORM_FEE_BPS


def compute_application_fee(amount: int, bps: int | None = None) -> int:
    """
    Application fee in cents for a charge of `amount` cents.

    Non-positive amounts carry no fee. Halves round up.

    Example:
        compute_application_fee(10000)       # 300
        compute_application_fee(1050, 300)   # 32 (31.5 rounds up)
    """
    if amount <= 0:
        return 0
    bps = platform_fee_bps() if bps is None else bps
    return round_half_up(amount * bps / 10000)
