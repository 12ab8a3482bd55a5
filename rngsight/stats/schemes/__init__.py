"""
Problem-specific applications of the generic methods in `rngsight.stats.common`.
"""
