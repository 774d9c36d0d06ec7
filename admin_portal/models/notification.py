from pydantic import BaseModel, Field


class SegmentNotification(BaseModel):
    segment: str = Field(min_length=1)  # "chew", "doctor" or "patient"
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)


class IndividualNotification(BaseModel):
    email: str = Field(min_length=1)
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)


class NotificationResponse(BaseModel):
    message: str
    data: dict
