"""rest-bridge: map a SQLAlchemy object graph onto a REST backend."""

__version__ = "0.1.0"
