"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in wbs_platform/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from wbs_platform.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

READ_LIMIT = "300/minute"
_MUTATING_METHODS = ["POST", "PUT", "PATCH", "DELETE"]


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - WBS mutations:  WBS_MUTATION_RATE_LIMIT (default 120/minute)
        - WBS reads:      300/minute
        - Health check:   exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    write_limit = app.config.get("WBS_MUTATION_RATE_LIMIT", "120/minute")
    bp = app.blueprints.get("wbs")
    if bp:
        limiter.limit(write_limit, methods=_MUTATING_METHODS)(bp)
        limiter.limit(READ_LIMIT, methods=["GET"])(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: write=%s read=%s", write_limit, READ_LIMIT)
