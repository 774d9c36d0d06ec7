from pydantic import BaseModel, Field


class CaseVisit(BaseModel):
    id: int | str | None = None
    date: str = ""
    weight: str | None = None
    height: str | None = None
    blood_pressure: str | None = None
    chews_notes: str = ""
    symptoms: list[str] = Field(default_factory=list)
    current_prescription: list[str] = Field(default_factory=list)
    created_at: str = ""


class ChewRef(BaseModel):
    id: int | str
    first_name: str = ""
    last_name: str = ""
    name: str = "Unknown"
    username: str = ""
    email: str = ""


class Case(BaseModel):
    id: int | str
    first_name: str = ""
    last_name: str = ""
    full_name: str = "Unknown"
    profile_picture_url: str = ""
    email: str = ""
    phone: str = ""
    gender: str = ""
    home_address: str = ""
    nearest_bus_stop: str = ""
    current_prescription: list[str] = Field(default_factory=list)
    symptoms: list[str] = Field(default_factory=list)
    chews_notes: list[str] = Field(default_factory=list)
    weight: str | None = None
    height: str | None = None
    blood_glucose: str | None = None
    chew: ChewRef | None = None
    visits: list[CaseVisit] = Field(default_factory=list)


class CaseListItem(BaseModel):
    id: int | str
    full_name: str
    profile_picture_url: str
    phone: str
    symptoms: list[str]
    chews_notes: list[str]
    chew_name: str
    visit_count: int


class CaseCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = ""
    phone: str = ""
    gender: str = ""
    home_address: str = ""
    nearest_bus_stop: str = ""
    current_prescription: list[str] = Field(default_factory=list)
    symptoms: list[str] = Field(default_factory=list)
    weight: str | None = None
    height: str | None = None
    blood_glucose: str | None = None
    chew_id: int | None = None


class CaseUpdate(BaseModel):
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    gender: str | None = None
    home_address: str | None = None
    nearest_bus_stop: str | None = None
    current_prescription: list[str] | str | None = None
    symptoms: list[str] | str | None = None
    chews_notes: list[str] | str | None = None
    weight: str | None = None
    height: str | None = None
    blood_glucose: str | None = None
