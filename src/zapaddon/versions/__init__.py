"""Version feed generation, update and aggregation."""

from .feed import (
    FeedError,
    FeedUpdateError,
    aggregate_feed_files,
    parse_feed,
    read_feed,
    render_feed,
    update_feed_files,
    write_feed,
)
from .generator import ArchiveError, create_entry, generate_version_file
from .models import AddOnEntry, ZapVersions

__all__ = [
    "AddOnEntry",
    "ArchiveError",
    "FeedError",
    "FeedUpdateError",
    "ZapVersions",
    "aggregate_feed_files",
    "create_entry",
    "generate_version_file",
    "parse_feed",
    "read_feed",
    "render_feed",
    "update_feed_files",
    "write_feed",
]
