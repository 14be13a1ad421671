"""Utility helpers for temporal-config."""

from temporal_config.utils.console import (
    console,
    print_error,
    print_info,
    print_panel,
    print_success,
    print_warning,
)
from temporal_config.utils.file_utils import read_yaml
from temporal_config.utils.timeutils import (
    ensure_utc,
    from_iso,
    to_epoch_us,
    to_iso,
    utc_now,
)

__all__ = [
    "console",
    "print_error",
    "print_info",
    "print_panel",
    "print_success",
    "print_warning",
    "read_yaml",
    "ensure_utc",
    "from_iso",
    "to_epoch_us",
    "to_iso",
    "utc_now",
]
