"""
Tevi Vesting - Token Disbursement Ledger

Releases a pre-committed quantity of one fungible asset to whitelisted
recipients on a cliff + initial unlock + linear schedule.

Main Components:
- core.controller: lifecycle and claims
- core.claim_engine: integer vesting arithmetic
- core.whitelist: per-recipient allocations
- core.ownership: admin capability
- cli: local command-line interface
"""

__version__ = "0.1.0"
__author__ = "Tevi Development Team"

__all__ = []
