"""Inventory ledger and FIFO rental billing for equipment rental yards."""
