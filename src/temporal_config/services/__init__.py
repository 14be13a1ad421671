"""Engine services.

- cache: time-bucketed resolution cache
- resolver: precedence-chain resolution of settings, rules and templates
- writer: serialized, retrying version writes
- rollback: version and date rollback, including bulk rollback
- snapshots: snapshot capture and restore
- config_service: the facade used by the CLI and HTTP API
"""

from temporal_config.services.cache import ResolutionCache
from temporal_config.services.config_service import ConfigService
from temporal_config.services.resolver import Resolver
from temporal_config.services.rollback import RollbackEngine
from temporal_config.services.snapshots import SnapshotManager
from temporal_config.services.writer import VersionWriter

__all__ = [
    "ConfigService",
    "ResolutionCache",
    "Resolver",
    "RollbackEngine",
    "SnapshotManager",
    "VersionWriter",
]
