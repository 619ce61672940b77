"""Pydantic schemas for Enquiries."""
from pydantic import BaseModel, Field


class EnquiryCreatedOut(BaseModel):
    ok: bool = True
    enquiry_id: str = Field(alias="enquiryId")
    public_token: str = Field(alias="publicToken")
    invited_count: int = Field(alias="invitedCount")
    message: str = "Your enquiry has been submitted and suppliers have been invited."

    model_config = {"populate_by_name": True}
