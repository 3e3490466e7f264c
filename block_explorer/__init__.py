"""
Tari block explorer.

Layers:
- core: configuration, logging, exceptions, base node interface
- infrastructure: Redis client, memo cache, shared cache, distributed lock, metrics
- services: index snapshot builder, mining stats, background updater
- api: FastAPI application and routes
"""
