"""
HTTP route handlers for benchmark endpoints.
"""

import logging
import azure.functions as func
from shared.auth import get_user_from_token, UnauthorizedError
from shared.responses import (
    success_response, created_response, error_response, not_found_response,
    forbidden_response, unauthorized_response, conflict_response,
    validation_error_response, parse_json_body
)
from shared.permissions import NotFoundError, ForbiddenError, ConflictError, get_request_actor
from shared.validation import ValidationError
from .service import BenchmarkService, BulkValidationError

logger = logging.getLogger(__name__)


async def list_benchmarks(req: func.HttpRequest) -> func.HttpResponse:
    """
    GET /api/benchmarks?assessment_id=&industry_id=&dimension_id=
    """
    try:
        get_user_from_token(req)

        service = BenchmarkService()
        benchmarks = await service.list_benchmarks(
            assessment_id=req.params.get("assessment_id"),
            industry_id=req.params.get("industry_id"),
            dimension_id=req.params.get("dimension_id"),
        )

        return success_response({"benchmarks": benchmarks})

    except UnauthorizedError:
        return unauthorized_response()
    except Exception as e:
        logger.error(f"Error listing benchmarks: {str(e)}")
        return error_response("Failed to fetch benchmarks", 500)


async def create_benchmark(req: func.HttpRequest) -> func.HttpResponse:
    """
    POST /api/benchmarks
    """
    try:
        actor = await get_request_actor(req)
        body = parse_json_body(req)

        service = BenchmarkService()
        benchmark = await service.create_benchmark(actor, body)

        return created_response({"benchmark": benchmark})

    except UnauthorizedError:
        return unauthorized_response()
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except ConflictError as e:
        return conflict_response(str(e))
    except ValidationError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error creating benchmark: {str(e)}")
        return error_response("Failed to create benchmark", 500)


async def get_benchmark(req: func.HttpRequest) -> func.HttpResponse:
    """
    GET /api/benchmarks/{benchmark_id}
    """
    try:
        get_user_from_token(req)
        benchmark_id = req.route_params.get("benchmark_id")

        service = BenchmarkService()
        benchmark = await service.get_benchmark(benchmark_id)

        return success_response({"benchmark": benchmark})

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("Benchmark", str(e))
    except Exception as e:
        logger.error(f"Error getting benchmark: {str(e)}")
        return error_response("Failed to fetch benchmark", 500)


async def update_benchmark(req: func.HttpRequest) -> func.HttpResponse:
    """
    PATCH /api/benchmarks/{benchmark_id}
    """
    try:
        actor = await get_request_actor(req)
        benchmark_id = req.route_params.get("benchmark_id")
        body = parse_json_body(req)

        service = BenchmarkService()
        benchmark = await service.update_benchmark(actor, benchmark_id, body)

        return success_response({"benchmark": benchmark})

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("Benchmark", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except ConflictError as e:
        return conflict_response(str(e))
    except ValidationError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error updating benchmark: {str(e)}")
        return error_response("Failed to update benchmark", 500)


async def delete_benchmark(req: func.HttpRequest) -> func.HttpResponse:
    """
    DELETE /api/benchmarks/{benchmark_id}
    """
    try:
        actor = await get_request_actor(req)
        benchmark_id = req.route_params.get("benchmark_id")

        service = BenchmarkService()
        await service.delete_benchmark(actor, benchmark_id)

        return success_response({"message": "Benchmark deleted successfully"})

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("Benchmark", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except Exception as e:
        logger.error(f"Error deleting benchmark: {str(e)}")
        return error_response("Failed to delete benchmark", 500)


async def bulk_create_benchmarks(req: func.HttpRequest) -> func.HttpResponse:
    """
    POST /api/benchmarks/bulk
    Body: {"benchmarks": [{"dimension_id", "industry_id", "value"}, ...]}
    """
    try:
        actor = await get_request_actor(req)
        body = parse_json_body(req)

        service = BenchmarkService()
        summary = await service.bulk_create_benchmarks(actor, body.get("benchmarks"))

        return created_response(summary)

    except UnauthorizedError:
        return unauthorized_response()
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except BulkValidationError as e:
        return validation_error_response(e.details)
    except ValidationError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error in bulk benchmark creation: {str(e)}")
        return error_response("Internal server error", 500)


def register_benchmark_routes(app: func.FunctionApp):
    """Register all benchmark-related routes with the function app."""
    app.route(route="benchmarks", methods=["GET"])(list_benchmarks)
    app.route(route="benchmarks", methods=["POST"])(create_benchmark)
    app.route(route="benchmarks/bulk", methods=["POST"])(bulk_create_benchmarks)
    app.route(route="benchmarks/{benchmark_id}", methods=["GET"])(get_benchmark)
    app.route(route="benchmarks/{benchmark_id}", methods=["PATCH"])(update_benchmark)
    app.route(route="benchmarks/{benchmark_id}", methods=["DELETE"])(delete_benchmark)
