"""
Test Suite

Contains unit tests for the quote API backend.

Structure:
- tests/unit/: Tests for individual components (cache, single-flight, providers, routes)

Uses pytest with pytest-asyncio for testing async functionality. No test makes
real network calls: provider clients are exercised through mocked transports
or a patched ``_get``.
"""
