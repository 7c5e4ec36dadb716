"""
Purchase Service Routes Registry
Defines all API routes exposed by the purchase service
"""

from typing import List, Dict, Any

SERVICE_ROUTES = [
    {
        "path": "/health",
        "methods": ["GET"],
        "auth_required": False,
        "description": "Service health check"
    },
    {
        "path": "/api/v1/purchase/health",
        "methods": ["GET"],
        "auth_required": False,
        "description": "Health check with store connectivity"
    },
    {
        "path": "/api/v1/purchase/info",
        "methods": ["GET"],
        "auth_required": False,
        "description": "Service metadata and routes"
    },
    # Settlement
    {
        "path": "/api/v1/purchase",
        "methods": ["POST"],
        "auth_required": True,
        "description": "Settle a purchase"
    },
    {
        "path": "/api/v1/purchase/orders/{idempotency_key}",
        "methods": ["GET"],
        "auth_required": True,
        "description": "Get settled order by idempotency key"
    },
    {
        "path": "/api/v1/purchase/stock/{company_name}/{product_name}",
        "methods": ["GET"],
        "auth_required": True,
        "description": "Live stock for a product"
    },
    # Operations
    {
        "path": "/api/v1/purchase/reconciliations",
        "methods": ["GET"],
        "auth_required": True,
        "description": "List open reconciliation records"
    },
    {
        "path": "/api/v1/purchase/reconciliations/{reconciliation_id}/resolve",
        "methods": ["POST"],
        "auth_required": True,
        "description": "Resolve a reconciliation record"
    },
]


def get_route_summary() -> Dict[str, Any]:
    """Compact route metadata for service info"""
    settlement_routes: List[str] = []
    operations_routes: List[str] = []
    health_routes: List[str] = []

    for route in SERVICE_ROUTES:
        path = route["path"]
        if "health" in path or path.endswith("/info"):
            health_routes.append(path)
        elif "/reconciliations" in path:
            operations_routes.append(path)
        else:
            settlement_routes.append(path)

    return {
        "route_count": len(SERVICE_ROUTES),
        "base_path": "/api/v1/purchase",
        "health": health_routes,
        "settlement": settlement_routes,
        "operations": operations_routes,
        "public_count": sum(1 for r in SERVICE_ROUTES if not r["auth_required"]),
        "protected_count": sum(1 for r in SERVICE_ROUTES if r["auth_required"]),
    }


# Service metadata
SERVICE_METADATA = {
    "service_name": "purchase_service",
    "version": "1.0.0",
    "tags": ["v1", "purchase", "inventory", "e-commerce"],
    "capabilities": [
        "purchase_settlement",
        "idempotent_retry",
        "inventory_reservation",
        "compensation",
        "reconciliation"
    ]
}
