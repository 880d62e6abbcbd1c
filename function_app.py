"""
Talent Admin API - Azure Functions Application

A Python-based Azure Functions backend for the multi-tenant talent
assessment platform. Handles administration of clients (tenants), users,
invites and benchmarks with Supabase as the database, storage and auth
provider.
"""

import azure.functions as func
import datetime
import json
import logging
import os

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create the main Function App instance
app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)

from clients.routes import register_client_routes
from users.routes import register_user_routes
from invites.routes import register_invite_routes
from benchmarks.routes import register_benchmark_routes

# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.route(route="health", methods=["GET"])
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint to verify the Azure Function is running."""
    logger.info("Health check endpoint called.")

    health_status = {
        "status": "healthy",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "service": "Talent Admin API",
        "version": "1.0.0",
        "environment": os.environ.get("AZURE_FUNCTIONS_ENVIRONMENT", "Development")
    }

    return func.HttpResponse(
        json.dumps(health_status),
        status_code=200,
        mimetype="application/json"
    )

# =============================================================================
# Route Groups
# =============================================================================

register_client_routes(app)
register_user_routes(app)
register_invite_routes(app)
register_benchmark_routes(app)

logger.info("Talent Admin API Azure Functions initialized successfully.")
