from .migrator import MIGRATION_MARKER_PATH, BlobStoreMigrator

__all__ = ["MIGRATION_MARKER_PATH", "BlobStoreMigrator"]
