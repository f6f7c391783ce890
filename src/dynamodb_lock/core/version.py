"""Version information for dynamodb-lock."""

__version__ = "1.0.0"
