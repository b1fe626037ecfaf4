from abc import ABC, abstractmethod
from typing import Optional

from choriad.models.schemas.payments import VerifiedTransaction


class ProviderError(Exception):
    """The payment provider could not vouch for a transaction."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class TransactionVerifier(ABC):
    @abstractmethod
    async def verify_transaction(
        self,
        *,
        transaction_id: Optional[str] = None,
        tx_ref: Optional[str] = None,
    ) -> VerifiedTransaction:
        """Fetch the authoritative transaction by provider id (preferred) or merchant reference.

        Raises ProviderError when the provider cannot confirm the transaction.
        """
        pass
