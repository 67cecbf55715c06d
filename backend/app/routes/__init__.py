"""HTTP routers. Versioned API routers live in ``routes.v1``."""
