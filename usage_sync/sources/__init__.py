"""
Usage report sources.

Decoding of provider-specific report shapes and concurrent fetching of
provider reports.
"""

from .fetcher import fetch_reports
from .providers import PROVIDERS, Provider, decode_import, resolve_provider

__all__ = ["PROVIDERS", "Provider", "decode_import", "fetch_reports", "resolve_provider"]
