"""
VoteGuard: ID verification and voting-session fraud detection core.

Modules:
- config: Centralized configuration management
- logger: Logging setup
- exceptions: Custom exception classes
- models: Data models
- persistence: JSON store, repositories and document storage
- verification: 3-layer ID verification, admin cases, whitelist
- liveness: Multi-person detection and suspicious pattern scoring
"""

__version__ = "1.0.0"
