from .color_cache import ColorCache
from .snapshot_writer import Snapshot, SnapshotWriter, utc_timestamp

__all__ = ['ColorCache', 'Snapshot', 'SnapshotWriter', 'utc_timestamp']
