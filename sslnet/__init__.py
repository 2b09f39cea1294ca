"""TLS contexts, certificate node ids, rate limiting and HTTP request streams for asyncio."""

__version__ = "0.1.0"