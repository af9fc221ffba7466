"""
Quote Providers Package

This package contains individual upstream provider modules.
Each provider has its own subfolder with:
- api_client.py: REST API logic
- __init__.py: Provider class implementing QuoteProvider

Adding a provider means adding a subfolder and registering it in
core.provider_manager.ProviderManager.
"""
