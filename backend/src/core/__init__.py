"""
Core package for shared utilities.

Configuration, structured logging, security helpers and the request-scoped
caller context used across the backend application.
"""
