"""
Backend package for the tree-service operations API.

This package provides a FastAPI application over a document-store
abstraction, an object-storage client for job photos and a thin proxy
layer for the Google Maps web services.
"""
