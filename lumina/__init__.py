"""
Lumina Ledger - Source Package

The ledger consistency engine behind a personal finance tracker:
wallets, categories and an append-only transaction log, kept mutually
consistent on every commit, plus the read-only aggregations that feed
the dashboard.

DESIGN PRINCIPLES:
1. One commit path for every transaction (human or AI-proposed)
2. All-or-nothing state transitions
3. No silent corrections
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Lumina Team"
