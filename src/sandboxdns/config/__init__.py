"""Configuration loading and logging setup for sandboxdns."""
