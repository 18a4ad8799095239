"""Request bodies that are not domain records themselves."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from healthbridge.domain.models import AlertPriority, Location, Threshold


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateAlertRequest(RequestModel):
    user_id: str | None = None
    phone_number: str | None = None
    message: str | None = None
    priority: AlertPriority | None = None
    category: str | None = None
    source: str | None = None
    location: Location | None = None


class AcknowledgeAlertRequest(RequestModel):
    alert_id: str | None = None
    acknowledged: bool | None = None


class ThresholdsUpdate(RequestModel):
    thresholds: list[Threshold]


class ChatRequest(RequestModel):
    sender: str = Field(alias="from", min_length=1)
    message: str = Field(min_length=1)
    session_id: str | None = None
