"""MoneroPay payment processor client."""

from xmr_pos.chain.moneropay.models import ObservedTransfer, ReceiveStatus
from xmr_pos.chain.moneropay.service import MoneroPayService

__all__ = ["MoneroPayService", "ObservedTransfer", "ReceiveStatus"]
