"""Estimating API route modules.

Each module exports a `router` object (APIRouter instance) included by
constructos.web.app. Shared dependencies live in constructos.web.dependencies
and request bodies in constructos.web.models.

Usage:
    from constructos.web.routes import workflow
    app.include_router(workflow.router)
"""

from constructos.web.routes import audit, conversion, grouping_rules, pricing, workflow

__all__ = ["audit", "conversion", "grouping_rules", "pricing", "workflow"]
