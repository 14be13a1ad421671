"""HTTP API for the configuration engine.

Exposes reads to any identified actor and writes to actors holding the admin
role. Every write-class request is recorded in the audit trail.
"""

from temporal_config.api.server import configure_logging, create_app

__all__ = ["configure_logging", "create_app"]
