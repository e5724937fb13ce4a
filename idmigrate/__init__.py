"""
Identity Migration Toolkit

Migrates users, organizations and organization memberships from a bulk export
snapshot of a source identity platform into a destination identity platform.

Supports:
- Streaming NDJSON snapshot files, one record per line
- ID translation tables shared between dependent jobs
- Bounded concurrency with rate-limit aware pause/drain/resume
- Idempotent re-runs via correlation keys on the destination side
"""

__version__ = "0.1.0"
