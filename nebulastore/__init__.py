"""Object-storage toolkit: S3 request handling and HTTP server, metadata store, storage backends."""

__version__ = "2.0.0"