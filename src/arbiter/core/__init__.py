"""Arbitration core: stake ledger, dispute records, voting and settlement."""
