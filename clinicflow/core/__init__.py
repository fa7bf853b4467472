"""Configuration and logging for the clinic flow API."""
