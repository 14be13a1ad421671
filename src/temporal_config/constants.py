"""Constants for temporal-config.

This module contains:
- VERSION: Package version
- Resolution and history defaults
- Rule/template defaults
- Change log markers
- HTTP header names

For runtime settings (env-overridable), import from:
- temporal_config.config.settings

For type-safe enums, import from:
- temporal_config.models.enums
"""

from typing import Final

from temporal_config import __version__

# =============================================================================
# Version
# =============================================================================

VERSION = __version__

# =============================================================================
# Resolution
# =============================================================================

# Number of entries in every precedence chain (workflow, agent, persona, global)
PRECEDENCE_CHAIN_LENGTH: Final[int] = 4

# Cache bucket used for "now" lookups
CACHE_BUCKET_CURRENT: Final[str] = "current"

# Token used in cache keys and logs for the empty scope
GLOBAL_SCOPE_TOKEN: Final[str] = "global"

# Settings have no variant; rules/templates use one
SETTING_VARIANT: Final[str] = ""

# =============================================================================
# History defaults
# =============================================================================

DEFAULT_VERSION_HISTORY_LIMIT: Final[int] = 50
DEFAULT_CHANGE_HISTORY_LIMIT: Final[int] = 100
DEFAULT_SNAPSHOT_LIST_LIMIT: Final[int] = 50
DEFAULT_AUDIT_LIST_LIMIT: Final[int] = 100

# =============================================================================
# Rules and templates
# =============================================================================

DEFAULT_RULE_ENGINE: Final[str] = "jsonlogic"
SUPPORTED_RULE_ENGINES: Final[tuple[str, ...]] = ("jsonlogic", "cel", "simple")

DEFAULT_TEMPLATE_LOCALE: Final[str] = "en-US"
SUPPORTED_TEMPLATE_CHANNELS: Final[tuple[str, ...]] = ("email", "voice", "ui", "sms")

# Workflow detection patterns live under this key prefix, resolved per persona
WORKFLOW_PATTERN_PREFIX: Final[str] = "workflow-patterns."
DEFAULT_PATTERN_PERSONA: Final[str] = "admin"

# =============================================================================
# Change log
# =============================================================================

# target_key recorded on bulk rollback / restore summary rows
BULK_TARGET_KEY: Final[str] = "*"

# Actor used when no actor is supplied (seeding, migrations)
SYSTEM_ACTOR: Final[str] = "system"

# Truncation for error messages persisted to the change log
MAX_ERROR_MESSAGE_LENGTH: Final[int] = 1000

# =============================================================================
# HTTP
# =============================================================================

HEADER_ACTOR: Final[str] = "X-Actor"
HEADER_ACTOR_ROLE: Final[str] = "X-Actor-Role"
API_PREFIX: Final[str] = "/api/config"
