"""
Shared API Layer
================

Middleware, exception handlers, the response envelope and the per-request
tenant context used by every router.
"""
