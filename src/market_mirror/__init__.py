"""Market Mirror - off-chain mirror of prediction-market dispute and token events."""

__version__ = "0.1.0"
