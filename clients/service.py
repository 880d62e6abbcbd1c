"""
Business logic for client (tenant) operations.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from shared.supabase_client import SupabaseService
from shared.permissions import (
    Actor, require_admin, require_super_admin, check_client_scope,
    NotFoundError
)
from shared.validation import (
    ValidationError, is_non_empty_string, clean_text, validate_color_field
)
from .assets import (
    UploadedAsset, ASSET_TYPES, validate_asset, generate_storage_path
)

logger = logging.getLogger(__name__)

BOOLEAN_FIELDS = ("require_profile", "require_research", "whitelabel")
COLOR_FIELDS = {
    "primary_color": "primary color",
    "accent_color": "accent color",
}


class AssetUploadError(Exception):
    """Raised when a client asset could not be written to storage."""
    pass


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_boolean(fields: Dict[str, Any], key: str) -> Optional[bool]:
    value = fields.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a boolean")
    return value


class ClientService(SupabaseService):
    """Service class for client CRUD operations and asset uploads."""

    async def list_clients(self, actor: Actor) -> List[Dict]:
        """
        List clients visible to the caller.
        Super admins see every client, everyone else only their own tenant.
        """
        query = self.table("clients").select("*")

        if not actor.is_super_admin:
            if not actor.client_id:
                return []
            query = query.eq("id", actor.client_id)

        result = query.order("created_at", desc=True).execute()
        return result.data

    async def get_client(self, actor: Actor, client_id: str) -> Dict:
        """
        Get a single client.

        Raises:
            NotFoundError: If the client doesn't exist
            ForbiddenError: If the client belongs to another tenant
        """
        client_row = self._get_client_row(client_id)
        check_client_scope(actor, client_row["id"])
        return client_row

    def _get_client_row(self, client_id: str) -> Dict:
        result = self.table("clients") \
            .select("*") \
            .eq("id", client_id) \
            .limit(1) \
            .execute()

        if not result.data:
            raise NotFoundError("Client not found")

        return result.data[0]

    async def create_client(
        self,
        actor: Actor,
        fields: Dict[str, Any],
        logo: Optional[UploadedAsset] = None,
        background: Optional[UploadedAsset] = None
    ) -> Dict:
        """
        Create a client, then upload and attach its logo and background.

        Every field and file is validated before the first write. If an upload
        fails after the row was inserted, uploaded objects are removed, the row
        is deleted and AssetUploadError is raised.

        Raises:
            ForbiddenError: If the caller is not a super admin
            ValidationError: If a field or file is invalid
            AssetUploadError: If a file upload fails
        """
        require_super_admin(actor)

        name = fields.get("name")
        if not is_non_empty_string(name):
            raise ValidationError("Client name is required")

        client_data: Dict[str, Any] = {
            "name": name.strip(),
            "address": clean_text(fields.get("address")),
            "logo": None,
            "background": None,
        }

        for key, label in COLOR_FIELDS.items():
            client_data[key] = validate_color_field(fields.get(key), label)

        for key in BOOLEAN_FIELDS:
            client_data[key] = bool(_check_boolean(fields, key))

        assets = self._validate_assets(logo, background)

        result = self.table("clients").insert(client_data).execute()
        if not result.data:
            raise Exception("Failed to create client")

        client_row = result.data[0]
        if not assets:
            return client_row

        urls: Dict[str, str] = {}
        uploaded_paths: List[str] = []

        for asset_type, asset in assets.items():
            path = generate_storage_path(client_row["id"], asset.file_name, asset_type)
            try:
                urls[asset_type] = self.upload_file(path, asset.data, asset.content_type)
            except Exception as e:
                logger.error(f"Error uploading {asset_type} for client {client_row['id']}: {str(e)}")
                self._discard_client(client_row["id"], uploaded_paths)
                raise AssetUploadError(f"Failed to upload {asset_type}")
            uploaded_paths.append(path)

        try:
            update_result = self.table("clients") \
                .update(urls) \
                .eq("id", client_row["id"]) \
                .execute()
        except Exception as e:
            logger.error(f"Error updating client {client_row['id']} with file URLs: {str(e)}")
            return client_row

        if update_result.data:
            return update_result.data[0]
        return client_row

    def _discard_client(self, client_id: str, uploaded_paths: List[str]) -> None:
        """Best-effort removal of a half-created client and its uploaded files."""
        self.delete_files(uploaded_paths)
        try:
            self.table("clients").delete().eq("id", client_id).execute()
            logger.info(f"Rolled back client {client_id} after failed upload")
        except Exception as e:
            logger.error(f"Failed to roll back client {client_id}: {str(e)}")

    def _validate_assets(
        self,
        logo: Optional[UploadedAsset],
        background: Optional[UploadedAsset]
    ) -> Dict[str, UploadedAsset]:
        assets = {}
        for asset_type, asset in (("logo", logo), ("background", background)):
            if asset is None:
                continue
            error = validate_asset(asset, asset_type)
            if error:
                raise ValidationError(f"{asset_type.capitalize()} validation failed: {error}")
            assets[asset_type] = asset
        return assets

    def _check_write_scope(self, actor: Actor, client_id: str) -> None:
        """Super admins may modify any client, client admins only their own."""
        require_admin(actor)
        check_client_scope(actor, client_id)

    async def update_client(
        self,
        actor: Actor,
        client_id: str,
        fields: Dict[str, Any],
        logo: Optional[UploadedAsset] = None,
        background: Optional[UploadedAsset] = None
    ) -> Dict:
        """
        Partially update a client. Uploaded files replace the current assets.

        Raises:
            ForbiddenError: If the caller may not modify this client
            NotFoundError: If the client doesn't exist
            ValidationError: If a field or file is invalid, or nothing changes
            AssetUploadError: If a file upload fails
        """
        self._check_write_scope(actor, client_id)

        update_data: Dict[str, Any] = {}

        if "name" in fields:
            name = fields["name"]
            if not is_non_empty_string(name):
                raise ValidationError("Client name cannot be empty")
            update_data["name"] = name.strip()

        if "address" in fields:
            update_data["address"] = clean_text(fields["address"])

        # JSON bodies may only clear stored assets; uploads go through multipart
        for asset_type in ASSET_TYPES:
            if asset_type in fields:
                if fields[asset_type] is not None:
                    raise ValidationError(
                        f"{asset_type.capitalize()} must be uploaded as a file or set to null"
                    )
                update_data[asset_type] = None

        for key, label in COLOR_FIELDS.items():
            if key in fields:
                update_data[key] = validate_color_field(fields[key], label)

        for key in BOOLEAN_FIELDS:
            value = _check_boolean(fields, key)
            if value is not None:
                update_data[key] = value

        assets = self._validate_assets(logo, background)

        if not update_data and not assets:
            raise ValidationError("No fields to update")

        self._get_client_row(client_id)

        for asset_type, asset in assets.items():
            path = generate_storage_path(client_id, asset.file_name, asset_type)
            try:
                update_data[asset_type] = self.upload_file(
                    path, asset.data, asset.content_type, upsert=True
                )
            except Exception as e:
                logger.error(f"Error uploading {asset_type} for client {client_id}: {str(e)}")
                raise AssetUploadError(f"Failed to upload {asset_type}: {str(e)}")

        update_data["updated_at"] = _utc_now()

        result = self.table("clients") \
            .update(update_data) \
            .eq("id", client_id) \
            .execute()

        if not result.data:
            raise NotFoundError("Client not found")

        return result.data[0]

    async def delete_client(self, actor: Actor, client_id: str) -> bool:
        """
        Delete a client (super admin only).

        Raises:
            ForbiddenError: If the caller is not a super admin
            NotFoundError: If the client doesn't exist
        """
        require_super_admin(actor)

        result = self.table("clients") \
            .delete() \
            .eq("id", client_id) \
            .execute()

        if not result.data:
            raise NotFoundError("Client not found")

        logger.info(f"Deleted client {client_id}")
        return True

    async def upload_asset(
        self,
        actor: Actor,
        client_id: Optional[str],
        asset: Optional[UploadedAsset],
        asset_type: Optional[str]
    ) -> str:
        """
        Upload a standalone logo or background image for a client.

        Returns:
            Public URL of the uploaded object

        Raises:
            ForbiddenError: If the caller may not modify this client
            ValidationError: If the file, type or client ID is invalid
            AssetUploadError: If the storage write fails
        """
        require_admin(actor)

        if asset is None:
            raise ValidationError("File is required")
        if asset_type not in ASSET_TYPES:
            raise ValidationError('File type must be either "logo" or "background"')
        if not is_non_empty_string(client_id):
            raise ValidationError("Client ID is required")

        client_id = client_id.strip()
        check_client_scope(actor, client_id)

        error = validate_asset(asset, asset_type)
        if error:
            raise ValidationError(error)

        path = generate_storage_path(client_id, asset.file_name, asset_type)
        try:
            return self.upload_file(path, asset.data, asset.content_type)
        except Exception as e:
            logger.error(f"Error uploading file to storage: {str(e)}")
            raise AssetUploadError(f"Failed to upload file: {str(e)}")
