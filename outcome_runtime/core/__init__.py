"""Shared infrastructure: exceptions, logging, settings."""
