"""Adapters layer for the match-tracker service.

This layer contains all adapters that translate between the core domain
and external systems (databases, message buses, APIs, etc).
"""