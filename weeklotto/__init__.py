"""Weekly numbers lottery: round lifecycle, board purchase and balance ledger."""
