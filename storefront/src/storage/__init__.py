"""S3-compatible object storage access."""

from storefront.src.storage.object_storage import ObjectStorage

__all__ = ["ObjectStorage"]
