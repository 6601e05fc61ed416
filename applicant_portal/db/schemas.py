import datetime as dt
from typing import Optional, Literal, Dict, List, Union
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr

# booleans and nulls must survive the round trip as themselves
FieldValue = Union[StrictStr, StrictBool, None]

StatusName = Literal["not_started", "in_progress", "submitted", "accepted", "waitlisted", "confirmed"]


class ApplicationOut(BaseModel):
    id: int
    owner_id: str
    fields: Dict[str, FieldValue] = Field(default_factory=dict)
    status: StatusName
    consent_given: bool
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class SaveApplicationIn(BaseModel):
    # partial: absent or null fields keep their stored value
    fields: Dict[str, FieldValue] = Field(default_factory=dict)
    consent_given: Optional[bool] = None
    status: Literal["in_progress", "submitted"] = "in_progress"


class SubmitApplicationIn(BaseModel):
    fields: Dict[str, FieldValue] = Field(default_factory=dict)
    consent_given: bool = False


class DecisionIn(BaseModel):
    decision: Literal["accepted", "waitlisted"]


class GateIssueOut(BaseModel):
    field: str
    message: str


class SubmissionErrorOut(BaseModel):
    message: str
    issues: List[GateIssueOut]
