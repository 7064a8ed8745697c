"""Unit tests for the estimating web route modules.

Each route module has a matching test file:

    tests/unit/web/
    ├── test_dependencies.py          # Tenant, role and permission dependencies
    ├── test_routes_audit.py          # Audit bundle download
    ├── test_routes_conversion.py     # Estimate-to-project conversion
    ├── test_routes_grouping_rules.py # Grouping rule management
    ├── test_routes_pricing.py        # Pricing preview and settings
    └── test_routes_workflow.py       # Status transitions

Routes are exercised through FastAPI's TestClient with get_session and the
service classes patched.
"""
