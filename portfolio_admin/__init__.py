"""
Portfolio Admin Content Synchronization
=======================================

Client-side orchestration for the administrative console of a portfolio
site: retry-aware Content API access, multi-step entity editors, concurrent
media uploads, and local collection reconciliation.
"""

__version__ = "1.0.0"
