"""
HTTP API: dependencies, middleware and versioned routers.
"""
