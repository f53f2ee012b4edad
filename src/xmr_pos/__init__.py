"""xmr-pos: payment settlement backend for Monero point-of-sale terminals."""

__version__ = "0.1.0"
