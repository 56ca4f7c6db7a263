"""Shared utilities (logging, circuit breaker)."""
