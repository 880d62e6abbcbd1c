"""
HTTP route handlers for user endpoints.
"""

import logging
import azure.functions as func
from shared.auth import UnauthorizedError
from shared.responses import (
    success_response, created_response, error_response, not_found_response,
    forbidden_response, unauthorized_response, conflict_response, parse_json_body
)
from shared.permissions import NotFoundError, ForbiddenError, ConflictError, get_request_actor
from shared.validation import ValidationError
from .service import UserService, UserProvisioningError

logger = logging.getLogger(__name__)


async def list_users(req: func.HttpRequest) -> func.HttpResponse:
    """
    GET /api/users
    List users in the caller's scope.
    """
    try:
        actor = await get_request_actor(req)

        service = UserService()
        users = await service.list_users(actor)

        return success_response({"users": users})

    except UnauthorizedError:
        return unauthorized_response()
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except Exception as e:
        logger.error(f"Error listing users: {str(e)}")
        return error_response("Failed to fetch users", 500)


async def create_user(req: func.HttpRequest) -> func.HttpResponse:
    """
    POST /api/users
    Create an auth identity and profile.
    """
    try:
        actor = await get_request_actor(req)
        body = parse_json_body(req)

        service = UserService()
        user = await service.create_user(actor, body)

        return created_response({"user": user})

    except UnauthorizedError:
        return unauthorized_response()
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except ConflictError as e:
        return conflict_response(str(e))
    except ValidationError as e:
        return error_response(str(e), 400)
    except UserProvisioningError as e:
        return error_response(str(e), 500)
    except Exception as e:
        logger.error(f"Error creating user: {str(e)}")
        return error_response("Internal server error", 500)


async def get_user(req: func.HttpRequest) -> func.HttpResponse:
    """
    GET /api/users/{user_id}
    """
    try:
        actor = await get_request_actor(req)
        user_id = req.route_params.get("user_id")

        service = UserService()
        user = await service.get_user(actor, user_id)

        return success_response({"user": user})

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("User", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except Exception as e:
        logger.error(f"Error getting user: {str(e)}")
        return error_response("Failed to fetch user", 500)


async def update_user(req: func.HttpRequest) -> func.HttpResponse:
    """
    PATCH /api/users/{user_id}
    """
    try:
        actor = await get_request_actor(req)
        user_id = req.route_params.get("user_id")
        body = parse_json_body(req)

        service = UserService()
        user = await service.update_user(actor, user_id, body)

        return success_response({"user": user})

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("User", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except ValidationError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error updating user: {str(e)}")
        return error_response("Failed to update user", 500)


async def delete_user(req: func.HttpRequest) -> func.HttpResponse:
    """
    DELETE /api/users/{user_id}
    """
    try:
        actor = await get_request_actor(req)
        user_id = req.route_params.get("user_id")

        service = UserService()
        await service.delete_user(actor, user_id)

        return success_response({"message": "User deleted successfully"})

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("User", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except Exception as e:
        logger.error(f"Error deleting user: {str(e)}")
        return error_response("Failed to delete user", 500)


async def bulk_create_users(req: func.HttpRequest) -> func.HttpResponse:
    """
    POST /api/users/bulk
    Create many users, reporting success or failure per entry.
    """
    try:
        actor = await get_request_actor(req)
        body = parse_json_body(req)

        service = UserService()
        summary = await service.bulk_create_users(actor, body.get("users"))

        return success_response(summary)

    except UnauthorizedError:
        return unauthorized_response()
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except ValidationError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error in bulk user creation: {str(e)}")
        return error_response("Internal server error", 500)


async def reset_user_password(req: func.HttpRequest) -> func.HttpResponse:
    """
    POST /api/users/{user_id}/reset-password
    """
    try:
        actor = await get_request_actor(req)
        user_id = req.route_params.get("user_id")
        body = parse_json_body(req)

        service = UserService()
        await service.reset_password(actor, user_id, body.get("password"))

        return success_response({
            "success": True,
            "message": "Password reset successfully"
        })

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("User", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except ValidationError as e:
        return error_response(str(e), 400)
    except UserProvisioningError as e:
        return error_response(str(e), 500)
    except Exception as e:
        logger.error(f"Error resetting password: {str(e)}")
        return error_response("Internal server error", 500)


def register_user_routes(app: func.FunctionApp):
    """Register all user-related routes with the function app."""
    app.route(route="users", methods=["GET"])(list_users)
    app.route(route="users", methods=["POST"])(create_user)
    app.route(route="users/bulk", methods=["POST"])(bulk_create_users)
    app.route(route="users/{user_id}", methods=["GET"])(get_user)
    app.route(route="users/{user_id}", methods=["PATCH"])(update_user)
    app.route(route="users/{user_id}", methods=["DELETE"])(delete_user)
    app.route(route="users/{user_id}/reset-password", methods=["POST"])(reset_user_password)
