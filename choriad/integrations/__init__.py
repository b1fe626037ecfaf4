"""
Integrations package initialization.
Exports the payment provider clients.
"""
from .base import ProviderError, TransactionVerifier
from .flutterwave import FlutterwaveClient

__all__ = [
    "ProviderError",
    "TransactionVerifier",
    "FlutterwaveClient",
]
