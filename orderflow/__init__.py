# MIT License
# Copyright (c) 2025 Hashborn

"""
OrderFlow reward ledger.

Tracks per-account trading volume across epochs, derives fee tiers from
staked balance and pays rewards through an immediate/vesting split.
"""

__version__ = "0.1.0"
