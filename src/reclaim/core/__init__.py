"""Reclaim core logic."""
