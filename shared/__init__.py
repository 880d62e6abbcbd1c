# Shared utilities for the Talent Admin API
from .auth import get_user_from_token, UnauthorizedError
from .supabase_client import get_supabase_client, SupabaseService
from .responses import success_response, error_response, created_response, not_found_response, forbidden_response, unauthorized_response, conflict_response, validation_error_response
from .permissions import Actor, derive_access_level, get_request_actor, ForbiddenError, NotFoundError, ConflictError
from .validation import ValidationError

__all__ = [
    "get_user_from_token",
    "UnauthorizedError",
    "get_supabase_client",
    "SupabaseService",
    "success_response",
    "error_response",
    "created_response",
    "not_found_response",
    "forbidden_response",
    "unauthorized_response",
    "conflict_response",
    "validation_error_response",
    "Actor",
    "derive_access_level",
    "get_request_actor",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
]
