"""
usage-sync: merge and reconcile AI usage reports into one usage document.
"""

__version__ = "1.0.0"
