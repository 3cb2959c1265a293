"""Steam Catalog.

A storefront addon that answers host queries (library search, game details,
catalog listing and update checks) using the Steam web APIs.

Features:
- Environment-based configuration with Pydantic validation
- Fuzzy library search over the Steam app list
- Curated store catalog sections
- Coalesced, rate-limited update checks with a durable version cache
"""

__version__ = "1.0.0"
__author__ = "OGI Team"
__license__ = "MIT"
__homepage__ = "https://github.com/Nat3z/steam-integration"

# Development status indicator
__status__ = "Active Development"
