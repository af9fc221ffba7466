"""
Core Package

Contains the provider-agnostic core logic including:
- QuoteProvider: Abstract base class defining the contract for all upstream providers
- ProviderManager: Registry that owns provider instances and their lifecycle
- Errors: Typed lookup failures and their HTTP status mapping
- Schemas: Pydantic models for quote records, search suggestions and cache stats

Providers, services and the API all depend on this layer, never the other way round.
"""
