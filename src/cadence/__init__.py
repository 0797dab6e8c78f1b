"""Cadence - recurring tasks and habit streaks."""
