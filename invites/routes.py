"""
HTTP route handlers for user invite endpoints.
"""

import logging
import azure.functions as func
from shared.auth import UnauthorizedError
from shared.responses import (
    success_response, created_response, error_response, not_found_response,
    forbidden_response, unauthorized_response
)
from shared.permissions import NotFoundError, ForbiddenError, get_request_actor
from .service import InviteService

logger = logging.getLogger(__name__)


async def send_user_invite(req: func.HttpRequest) -> func.HttpResponse:
    """
    POST /api/users/{user_id}/invite
    Create an invite token and email it to the user.
    """
    try:
        actor = await get_request_actor(req)
        user_id = req.route_params.get("user_id")

        if not user_id:
            return error_response("Invalid user ID", 400)

        service = InviteService()
        result = await service.send_invite(actor, user_id)

        return created_response(result)

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("User", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except Exception as e:
        logger.error(f"Error creating invite: {str(e)}")
        return error_response("Failed to create invite", 500)


async def list_user_invites(req: func.HttpRequest) -> func.HttpResponse:
    """
    GET /api/users/{user_id}/invite
    """
    try:
        actor = await get_request_actor(req)
        user_id = req.route_params.get("user_id")

        if not user_id:
            return error_response("Invalid user ID", 400)

        service = InviteService()
        invites = await service.list_invites(actor, user_id)

        return success_response({"invites": invites})

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("User", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except Exception as e:
        logger.error(f"Error fetching invites: {str(e)}")
        return error_response("Failed to fetch invites", 500)


def register_invite_routes(app: func.FunctionApp):
    """Register user invite routes with the function app."""
    app.route(route="users/{user_id}/invite", methods=["POST"])(send_user_invite)
    app.route(route="users/{user_id}/invite", methods=["GET"])(list_user_invites)
