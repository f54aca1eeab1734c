"""Pydantic models for JSON request payloads."""

from pydantic import BaseModel, ConfigDict, Field


class InquiryPayload(BaseModel):
    """Contact form submission.

    Every field is optional at the schema level so that missing required
    fields surface as a domain validation error with a readable message.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    program: str | None = None
    grade: str | None = None
    message: str | None = None
    timestamp: str | None = None
    client_token: str | None = Field(default=None, alias="clientToken")

    def fields(self) -> dict[str, object]:
        """Return the record fields without the client token."""
        return self.model_dump(exclude={"client_token"}, exclude_none=True)
