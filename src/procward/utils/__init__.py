"""Shared utilities for procward."""
