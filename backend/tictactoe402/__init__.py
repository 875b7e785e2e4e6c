"""
Tic-Tac-Toe x402 - pay-per-play tic-tac-toe behind an x402 USDC micropayment.
"""

__version__ = "0.1.0"
