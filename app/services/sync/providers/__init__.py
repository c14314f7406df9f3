"""
Data Source Providers
Zoho Books API client and page walker
"""
from app.services.sync.providers.zoho_books import ZohoBooksClient, PageWalkResult, fetch_all_pages

__all__ = [
    "ZohoBooksClient",
    "PageWalkResult",
    "fetch_all_pages",
]
