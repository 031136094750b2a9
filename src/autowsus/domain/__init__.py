"""
Domain layer for AutoWsus.

Pure data structures and policy with no I/O dependencies.
"""
