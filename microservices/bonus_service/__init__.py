"""
Bonus Service

Bonus lifecycle engine for the isA platform.

Features:
- Rule-based eligibility with human-readable denial reasons
- Per-type handlers for 37 bonus types across 12 categories
- Turnover (wagering) accumulation per activity category
- Ledger-first conversion, forfeiture and expiry
- Approval gate for high-value awards
- Event-driven auto-award on deposits, purchases and actions
"""

__version__ = "1.0.0"
