"""
DEX Sniper.

An event-driven bot that discovers newly created Solana trading pairs,
screens each candidate token against configurable risk heuristics, buys
through a swap aggregator, and exits positions on stop-loss / take-profit.
"""

__version__ = "0.1.0"
