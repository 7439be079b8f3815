# booking_engine/services/profile_client.py
"""
Client for the user service's public profile endpoint.

The publication gate attaches the performer's public profile summary to the
public projection. Profiles are owned by the user service; a failure here
only means the projection is published without a summary.
"""
import logging
from typing import Dict, Optional

import httpx

from booking_engine.core.config import settings

logger = logging.getLogger(__name__)

# Only these keys are ever copied out of the user service response.
PUBLIC_PROFILE_FIELDS = ("display_name", "avatar_url", "bio")


class ProfileClient:
    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        base_url = base_url if base_url is not None else settings.USER_SERVICE_URL
        # Strip /graphql suffix if present (common misconfiguration)
        if base_url.endswith("/graphql"):
            base_url = base_url[: -len("/graphql")]
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key if api_key is not None else settings.INTERNAL_API_KEY
        self.timeout = 5.0

    def get_public_profile(self, user_id: str) -> Optional[Dict]:
        if not self.base_url:
            logger.warning("USER_SERVICE_URL not configured")
            return None

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(
                    f"{self.base_url}/internal/users/{user_id}/public-profile",
                    headers={"x-api-key": self.api_key},
                )

            if response.status_code == 200:
                data = response.json()
                return {
                    "id": user_id,
                    **{key: data.get(key) for key in PUBLIC_PROFILE_FIELDS},
                }
            if response.status_code == 404:
                logger.warning(f"Public profile for {user_id} not found")
                return None

            logger.error(f"Failed to fetch profile {user_id}: HTTP {response.status_code}")
            return None

        except httpx.TimeoutException:
            logger.error(f"Timeout fetching public profile for {user_id}")
            return None
        except httpx.HTTPError as e:
            logger.error(f"Error fetching public profile for {user_id}: {e}")
            return None


# Singleton instance
profile_client = ProfileClient()
