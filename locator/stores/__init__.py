"""Data stores for caching.

Stores handle:
- Redis: store catalog hashes, postal-code coordinate hashes

No ranking logic in stores - that belongs in services.
"""
