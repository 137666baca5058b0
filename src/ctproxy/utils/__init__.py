"""Shared utilities for ctproxy."""
