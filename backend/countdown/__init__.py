"""Countdown timer core: models, selection engine and persistence."""
