"""
Atomic Transaction Handlers.

Transaction handlers encapsulate multi-row operations that must execute
atomically (all succeed or all rollback).

Key design principles:
1. SERIALIZABLE isolation level for DB transactions (PostgreSQL)
2. SELECT FOR UPDATE row locks plus conditional UPDATEs against the expected pre-state
3. Complete rollback on any step failure
4. Logging with trace_id for debugging

Transaction handlers:
- SwapTransaction: Confirm an exchange and swap its two bookings' consumers
"""

from scheduling.transactions.swap_transaction import SwapResult, SwapTransaction

__all__ = ["SwapResult", "SwapTransaction"]
