"""World-state engine (grid mapping, spawning, cell memory, movement, session).

Kept free of FastAPI and Redis concerns so it can be reused by API routes, CLI, and tests.
"""
