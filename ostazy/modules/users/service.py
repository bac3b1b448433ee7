from datetime import datetime, timezone
from typing import List, Optional

from ostazy.core.errors import BackendError, error_message
from ostazy.database.client import BackendClient
from ostazy.modules.users.schemas import ProfileResponse, ProfileUpdate


class ProfileService:
    def __init__(self, client: BackendClient, table: str = "user_profiles"):
        self.client = client
        self.table = table

    async def get_profile(self, user_id: str) -> ProfileResponse:
        """Get profile by ID"""
        result = await self.client.from_(self.table)\
            .select("*")\
            .eq("id", user_id)\
            .maybe_single()

        if result.error:
            raise BackendError(error_message(result.error), error=result.error, status_code=500)
        if not result.data:
            raise BackendError("Profile not found", status_code=404)

        return ProfileResponse(**result.data)

    async def get_profile_by_email(self, email: str) -> Optional[ProfileResponse]:
        """Get profile by email, None when there is none"""
        result = await self.client.from_(self.table)\
            .select("*")\
            .eq("email", email)\
            .maybe_single()

        if result.error or not result.data:
            return None

        return ProfileResponse(**result.data)

    async def update_profile(self, user_id: str, profile_data: ProfileUpdate) -> ProfileResponse:
        """Update the fields that were given"""
        update_data = profile_data.model_dump(exclude_none=True)
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

        result = await self.client.from_(self.table)\
            .update(update_data)\
            .eq("id", user_id)

        if result.error:
            raise BackendError(error_message(result.error), error=result.error, status_code=500)
        if not result.data:
            raise BackendError("Profile not found", status_code=404)

        return ProfileResponse(**result.data[0])

    async def list_profiles(self, user_ids: Optional[List[str]] = None, limit: int = 10) -> List[ProfileResponse]:
        """Newest profiles first, optionally restricted to the given IDs"""
        query = self.client.from_(self.table).select("*")
        if user_ids is not None:
            if not user_ids:
                return []
            query = query.in_("id", user_ids)
        result = await query.order("created_at", ascending=False).limit(limit)

        if result.error:
            raise BackendError(error_message(result.error), error=result.error, status_code=500)

        return [ProfileResponse(**profile) for profile in result.data or []]

    async def delete_profile(self, user_id: str) -> None:
        result = await self.client.from_(self.table)\
            .delete()\
            .eq("id", user_id)

        if result.error:
            raise BackendError(error_message(result.error), error=result.error, status_code=500)
