# sk_platform/__init__.py
# Synkuru - process-wide services: config, logging, caches, limiter, gateway, id mapping
