"""flowbridge - convert low-code application models to and from clipboard markup."""

__version__ = "0.1.0"
