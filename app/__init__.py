"""
FastAPI Application Package

This package contains the FastAPI application and routing logic.
It serves as the entry point for the backend API, exposing cached quote
lookups, symbol search and cache administration endpoints.
"""
