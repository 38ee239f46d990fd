"""Configuration package (Facade).

Re-exports the public config types so callers import from a single, stable path:

	from s3_broker.services.config import S3Config
"""

from s3_broker.services.config.s3_config import S3Config

__all__ = ["S3Config"]
