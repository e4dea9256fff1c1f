"""
Shared building blocks for the donor reconciliation services:

- Pydantic settings for configuration
- Structured logging with structlog
- HTTPX client with retries and exponential backoff
- Per-invocation SQLAlchemy engine scope
- Error taxonomy
"""

__version__ = "0.1.0"
