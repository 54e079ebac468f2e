"""Rate limiting store adapters.

This package provides a small abstraction layer so the services can run
against a process-local store in development and tests, and against a shared
Redis instance in production, without changing the decision logic.
"""
