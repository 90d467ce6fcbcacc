"""Shareholder registry service for transfer agents."""
