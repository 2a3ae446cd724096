"""
MarketPulse - learns event -> price correlations and turns them into
BUY/SELL/HOLD recommendations and market trend calls.
"""

__version__ = "0.1.0"
