"""Choriad payments reconciliation service.

Receives Flutterwave webhooks for escrow payments and worker payouts,
re-verifies them with the provider and applies the booking state machine.
"""

__all__: list[str] = []
