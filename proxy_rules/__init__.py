"""proxy-rules - pick a proxy profile for a URL from prioritized pattern rules."""

__version__ = "0.1.0"
