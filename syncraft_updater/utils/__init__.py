"""
Shared helpers for paths, formatting and structured logging.
"""
