"""
StripBooth Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (last added executes first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    - Rate limiting rejects floods before any database work.
    - The request ID is set before the access log line is written, so both
      the access log and the error envelopes carry it.
"""
