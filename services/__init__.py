"""
Services Package

- single_flight: Collapses concurrent fetches of one symbol into a single upstream call
- quote_service: Cached, deduplicated quote lookups plus background cache cleanup
"""
