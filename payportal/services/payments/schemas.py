"""API request schemas for customer payment endpoints."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PaymentCreateRequest(BaseModel):
    """Payment submission payload.

    Fields are deliberately loose here; `collect_payment_errors` reports every
    problem at once instead of the first schema error.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    recipient_name: str | None = None
    recipient_email: str | None = None
    recipient_iban: str | None = Field(default=None, alias="recipientIBAN")
    recipient_swift: str | None = Field(default=None, alias="recipientSWIFT")
    recipient_address: str | None = None
    recipient_city: str | None = None
    recipient_country: str | None = None
    amount: str | int | float | None = None
    currency: str | None = None
    reference: str | None = None
    purpose: str | None = None

    def wire_fields(self) -> dict:
        return self.model_dump(by_alias=True)


class IbanCheckRequest(BaseModel):
    iban: str | None = None


class SwiftCheckRequest(BaseModel):
    swift: str | None = None
