"""Wallet core: keys, commitments, stealth addresses, tree, notes and sync."""
