"""Command-line interface for chatbridge."""
