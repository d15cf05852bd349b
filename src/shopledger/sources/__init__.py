# Store export adapters
# Each module turns one kind of store export into normalized records plus quality reports

from .store_export import LoadedSnapshot, StoreSnapshotLoader

__all__ = ["LoadedSnapshot", "StoreSnapshotLoader"]
