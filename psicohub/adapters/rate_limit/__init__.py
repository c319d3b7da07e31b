"""Rate limiting adapters.

This package holds the fixed-window limiter and its counter stores: an
in-process map for single workers and development, and Redis for counts
shared across processes.
"""
