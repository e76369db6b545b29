"""
Auth Context Model
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AuthContext(BaseModel):
    """
    Ambient identity/session values used to parameterize requests.

    Populated once when a run starts (tokens from configuration, tenant and
    region from the identity lookup) and treated as read-only afterwards.
    """

    tenant_id: Optional[str] = Field(None, description="Tenant identifier")
    region_id: Optional[str] = Field(None, description="Region identifier")
    bearer_token: Optional[str] = Field(None, description="Bearer/JWT token")
    anti_forgery_token: Optional[str] = Field(None, description="XSRF token")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_settings(cls, settings) -> "AuthContext":
        """Seed the token fields from application settings."""
        return cls(
            bearer_token=settings.BEARER_TOKEN,
            anti_forgery_token=settings.ANTI_FORGERY_TOKEN,
        )
