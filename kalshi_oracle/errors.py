from __future__ import annotations


class ConfigError(Exception):
    """Raised at startup when configuration or credentials are unusable."""


class KalshiHTTPError(Exception):
    """Raised when a Kalshi HTTP request cannot be satisfied."""


class KalshiAuthError(Exception):
    """Raised when the API private key cannot be loaded or used to sign."""


class OracleError(Exception):
    """Raised when the decision model cannot be reached or returns nothing."""


class PriceFeedError(Exception):
    """Raised when the price feed fails for a reason other than being unavailable."""


class LedgerError(Exception):
    """Raised on an invalid ledger transition (e.g. settling a settled row)."""
