"""Reclaim scan session and selection client."""
