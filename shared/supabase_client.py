"""
Supabase client singleton for database, storage and auth-admin operations.
"""

import os
import logging
from typing import Optional, List
from supabase import create_client, Client
from postgrest.exceptions import APIError

logger = logging.getLogger(__name__)

# Singleton instance
_supabase_client: Optional[Client] = None

UNIQUE_VIOLATION = "23505"


def get_supabase_url() -> str:
    """Get the Supabase URL from environment variables."""
    url = os.environ.get("SUPABASE_URL")
    if not url:
        raise ValueError("SUPABASE_URL environment variable not set")
    return url


def get_supabase_service_key() -> str:
    """Get the Supabase service key from environment variables."""
    key = os.environ.get("SUPABASE_SERVICE_KEY")
    if not key:
        raise ValueError("SUPABASE_SERVICE_KEY environment variable not set")
    return key


def get_storage_bucket() -> str:
    """Get the bucket that holds client logos and backgrounds."""
    return os.environ.get("SUPABASE_STORAGE_BUCKET", "client-assets")


def get_supabase_client() -> Client:
    """
    Get the Supabase client singleton.
    Uses the service role key, so row-level security is bypassed and every
    route enforces tenant scoping itself.

    Returns:
        Supabase Client instance
    """
    global _supabase_client

    if _supabase_client is None:
        _supabase_client = create_client(get_supabase_url(), get_supabase_service_key())
        logger.info("Supabase client initialized")

    return _supabase_client


def is_unique_violation(error: Exception) -> bool:
    """Check whether a PostgREST error is a Postgres unique-constraint violation."""
    return isinstance(error, APIError) and error.code == UNIQUE_VIOLATION


class SupabaseService:
    """
    Base service class for Supabase operations.
    Provides common database and storage utilities.
    """

    def __init__(self):
        self.client = get_supabase_client()
        self.storage_bucket = get_storage_bucket()

    @property
    def storage(self):
        """Get the storage client."""
        return self.client.storage

    def table(self, table_name: str):
        """Get a table reference for queries."""
        return self.client.table(table_name)

    def upload_file(
        self,
        path: str,
        file_data: bytes,
        content_type: str,
        upsert: bool = False
    ) -> str:
        """
        Upload a file to Supabase Storage.

        Args:
            path: Storage path (e.g., "clients/<id>/logos/logo_123.png")
            file_data: File content as bytes
            content_type: MIME type of the file
            upsert: Replace an existing object at the same path

        Returns:
            Public URL of the uploaded file
        """
        bucket = self.storage.from_(self.storage_bucket)
        bucket.upload(
            path,
            file_data,
            {
                "content-type": content_type,
                "cache-control": "3600",
                "upsert": "true" if upsert else "false",
            }
        )
        return bucket.get_public_url(path)

    def delete_files(self, paths: List[str]) -> bool:
        """
        Remove files from Supabase Storage.
        Failures are logged, never raised.

        Returns:
            True if the removal call succeeded
        """
        if not paths:
            return True
        try:
            self.storage.from_(self.storage_bucket).remove(paths)
            return True
        except Exception as e:
            logger.error(f"Error deleting files {paths}: {str(e)}")
            return False
