"""Core runtime infrastructure: environment-driven settings and logging setup."""
