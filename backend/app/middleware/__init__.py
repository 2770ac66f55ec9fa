# Middleware package init
"""
PetMatch Backend - Middleware Package
=====================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters):
    Request → [Request ID] → [Logging] → [GZip] → Route Handler

    1. Request ID: Generate correlation ID for logging and error bodies
    2. Logging: Log method, path, status and duration with that ID

    The order is reversed for responses, so the request ID header is set on
    the way out and the access log sees the final status code.
"""
