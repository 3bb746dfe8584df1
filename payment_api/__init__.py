"""Payment gateway facade for the PhonePe aggregator and the PayPal processor."""

__version__ = "1.0.0"
