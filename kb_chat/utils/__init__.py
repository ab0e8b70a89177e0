"""Utility helpers for Knowledge Base Chat."""
