"""messagely: direct messaging API with bearer-token authentication."""

__version__ = "0.1.0"
