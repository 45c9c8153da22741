"""Backend API Adapters.

HTTP client for the read-only prediction backend.
Bounded Context: Backend Access
"""
