"""
PeakStreak Backend: Middleware Package
=======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [Timeout] → [GZip] → [CORS] → Route Handler

    1. Request ID first so every later log line carries it
    2. Logging wraps the timeout, so a 504 is logged with its real duration
    3. Timeout bounds everything the route does, including concurrent reads
"""
