"""
Pydantic request models for API endpoints.

Message and tone are optional at the schema level so that a missing field
is reported as a 400 by the rewrite route, like every other rejected
rewrite request.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.types.accounts import AnonymousSession


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RewriteRequest(CamelModel):
    """Request model for a single message rewrite."""

    message: Optional[str] = None
    tone: Optional[str] = None
    anonymous_usage: Optional[AnonymousSession] = Field(
        default=None,
        description="Signed-out usage counter kept by the browser",
    )


class ReferralRequest(CamelModel):
    referral_code: Optional[str] = Field(
        default=None,
        max_length=64,
        validation_alias=AliasChoices("referralCode", "code"),
    )
