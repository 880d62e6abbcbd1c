"""
HTTP route handlers for client (tenant) endpoints.
"""

import logging
from typing import Any, Dict, Optional, Tuple
import azure.functions as func
from shared.auth import UnauthorizedError
from shared.responses import (
    success_response, created_response, error_response, not_found_response,
    forbidden_response, unauthorized_response, parse_json_body
)
from shared.permissions import NotFoundError, ForbiddenError, get_request_actor
from shared.validation import ValidationError, parse_form_bool
from users.service import UserService
from .assets import UploadedAsset, read_uploaded_file
from .service import ClientService, AssetUploadError, BOOLEAN_FIELDS

logger = logging.getLogger(__name__)

_FORM_TEXT_FIELDS = ("name", "address", "primary_color", "accent_color")


def _is_multipart(req: func.HttpRequest) -> bool:
    return "multipart/form-data" in req.headers.get("Content-Type", "")


def _read_client_payload(
    req: func.HttpRequest
) -> Tuple[Dict[str, Any], Optional[UploadedAsset], Optional[UploadedAsset]]:
    """
    Read client fields and optional logo/background files from the request.

    Multipart bodies carry text fields, ``"true"``/``"false"`` booleans and
    files. JSON bodies carry fields only.
    """
    if not _is_multipart(req):
        return parse_json_body(req), None, None

    form = req.form
    fields: Dict[str, Any] = {}

    for key in _FORM_TEXT_FIELDS:
        if key in form:
            fields[key] = form.get(key)

    for key in BOOLEAN_FIELDS:
        value = parse_form_bool(form.get(key))
        if value is not None:
            fields[key] = value

    files = req.files
    logo = read_uploaded_file(files.get("logo"))
    background = read_uploaded_file(files.get("background"))

    return fields, logo, background


async def list_clients(req: func.HttpRequest) -> func.HttpResponse:
    """
    GET /api/clients
    List clients visible to the caller.
    """
    try:
        actor = await get_request_actor(req)

        service = ClientService()
        clients = await service.list_clients(actor)

        return success_response({"clients": clients})

    except UnauthorizedError:
        return unauthorized_response()
    except Exception as e:
        logger.error(f"Error listing clients: {str(e)}")
        return error_response("Failed to fetch clients", 500)


async def create_client(req: func.HttpRequest) -> func.HttpResponse:
    """
    POST /api/clients
    Create a client from a JSON or multipart body (super admin only).
    """
    try:
        actor = await get_request_actor(req)
        fields, logo, background = _read_client_payload(req)

        service = ClientService()
        client = await service.create_client(actor, fields, logo, background)

        logger.info(f"Created client {client.get('id')}")
        return created_response({"client": client})

    except UnauthorizedError:
        return unauthorized_response()
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except ValidationError as e:
        return error_response(str(e), 400)
    except AssetUploadError as e:
        return error_response(str(e), 500)
    except Exception as e:
        logger.error(f"Error creating client: {str(e)}")
        return error_response("Failed to create client", 500)


async def get_client(req: func.HttpRequest) -> func.HttpResponse:
    """
    GET /api/clients/{client_id}
    """
    try:
        actor = await get_request_actor(req)
        client_id = req.route_params.get("client_id")

        service = ClientService()
        client = await service.get_client(actor, client_id)

        return success_response({"client": client})

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("Client", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except Exception as e:
        logger.error(f"Error getting client: {str(e)}")
        return error_response("Failed to fetch client", 500)


async def update_client(req: func.HttpRequest) -> func.HttpResponse:
    """
    PATCH /api/clients/{client_id}
    Partially update a client. Multipart bodies may replace the logo and
    background images.
    """
    try:
        actor = await get_request_actor(req)
        client_id = req.route_params.get("client_id")
        fields, logo, background = _read_client_payload(req)

        service = ClientService()
        client = await service.update_client(actor, client_id, fields, logo, background)

        return success_response({"client": client})

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("Client", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except ValidationError as e:
        return error_response(str(e), 400)
    except AssetUploadError as e:
        return error_response(str(e), 500)
    except Exception as e:
        logger.error(f"Error updating client: {str(e)}")
        return error_response("Failed to update client", 500)


async def delete_client(req: func.HttpRequest) -> func.HttpResponse:
    """
    DELETE /api/clients/{client_id}
    """
    try:
        actor = await get_request_actor(req)
        client_id = req.route_params.get("client_id")

        service = ClientService()
        await service.delete_client(actor, client_id)

        return success_response({"message": "Client deleted successfully"})

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("Client", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except Exception as e:
        logger.error(f"Error deleting client: {str(e)}")
        return error_response("Failed to delete client", 500)


async def upload_client_asset(req: func.HttpRequest) -> func.HttpResponse:
    """
    POST /api/clients/upload
    Upload a logo or background image. Multipart fields: ``file``,
    ``fileType`` (logo|background) and ``clientId``.
    """
    try:
        actor = await get_request_actor(req)

        if not _is_multipart(req):
            return error_response("File is required", 400)

        asset = read_uploaded_file(req.files.get("file"))
        asset_type = req.form.get("fileType")
        client_id = req.form.get("clientId")

        service = ClientService()
        url = await service.upload_asset(actor, client_id, asset, asset_type)

        return created_response({"url": url})

    except UnauthorizedError:
        return unauthorized_response()
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except ValidationError as e:
        return error_response(str(e), 400)
    except AssetUploadError as e:
        return error_response(str(e), 500)
    except Exception as e:
        logger.error(f"Error in client upload: {str(e)}")
        return error_response("Internal server error", 500)


async def import_client_users(req: func.HttpRequest) -> func.HttpResponse:
    """
    POST /api/clients/{client_id}/users/bulk
    Import spreadsheet rows as users of this client.
    Body: {"users": [{"Name", "Email", "Username", "Industry"}, ...]}
    """
    try:
        actor = await get_request_actor(req)
        client_id = req.route_params.get("client_id")
        body = parse_json_body(req)

        client = await ClientService().get_client(actor, client_id)

        service = UserService()
        summary = await service.import_client_users(actor, client["id"], body.get("users"))

        return success_response(summary)

    except UnauthorizedError:
        return unauthorized_response()
    except NotFoundError as e:
        return not_found_response("Client", str(e))
    except ForbiddenError as e:
        return forbidden_response(str(e))
    except ValidationError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error importing users for client: {str(e)}")
        return error_response("Internal server error", 500)


def register_client_routes(app: func.FunctionApp):
    """Register all client-related routes with the function app."""
    app.route(route="clients", methods=["GET"])(list_clients)
    app.route(route="clients", methods=["POST"])(create_client)
    app.route(route="clients/upload", methods=["POST"])(upload_client_asset)
    app.route(route="clients/{client_id}", methods=["GET"])(get_client)
    app.route(route="clients/{client_id}", methods=["PATCH"])(update_client)
    app.route(route="clients/{client_id}", methods=["DELETE"])(delete_client)
    app.route(route="clients/{client_id}/users/bulk", methods=["POST"])(import_client_users)
