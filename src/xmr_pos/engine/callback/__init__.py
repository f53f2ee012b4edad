"""Inbound notification handling (MoneroPay callbacks, LWS hooks)."""

from xmr_pos.engine.callback.auth import sign_callback_token, verify_callback_token
from xmr_pos.engine.callback.hooks import HookObservation, LwsHookPayload, LwsTxInfo
from xmr_pos.engine.callback.service import CallbackService

__all__ = [
    "CallbackService",
    "HookObservation",
    "LwsHookPayload",
    "LwsTxInfo",
    "sign_callback_token",
    "verify_callback_token",
]
