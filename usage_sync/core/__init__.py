"""
Core modules for usage-sync.

This package contains the merge engine: normalization, cost
reconciliation, merging, conflict resolution, totals selection,
validation and the combined cross-provider view.
"""
