"""
Base schemas used across the application.
"""
from pydantic import BaseModel


class Acknowledgement(BaseModel):
    """Response envelope for webhook and payment verification endpoints.

    Flutterwave only looks at the status code; ``ok``/``message`` are for
    operators reading the delivery log on the provider dashboard.
    """
    ok: bool = True
    message: str

