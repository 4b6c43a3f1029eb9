"""
Core Proxy Gateway

Reverse proxy gateway built on FastAPI that forwards client traffic to a
pool of interchangeable backend cores. Tracks backend health, selects a
core per request, records request outcomes and authenticates callers
through sessions or bearer tokens.
"""

__version__ = "0.1.0"
