"""
pagewalk - Rate-limited, cursor-paginated API fetching.

Bounds concurrent requests, backs off on HTTP 429 for every caller at
once, deduplicates identical in-flight requests, and streams paginated
collections with one page of lookahead.
"""

__version__ = "0.1.0"
__app_name__ = "pagewalk"
