"""newsrag — news retrieval, ranking and resilient session storage."""

__version__ = "0.1.0"
