from pydantic import BaseModel, Field

from admin_portal.models.case import CaseVisit


class Person(BaseModel):
    id: int | str
    role: str | None = None  # "doctor", "chew", "patient", "admin"
    first_name: str = ""
    last_name: str = ""
    full_name: str = "Unknown"
    profile_picture_url: str = ""
    email: str = ""
    phone: str = ""
    gender: str = ""
    home_address: str = ""
    country: str = ""
    date_of_birth: str = ""
    languages: list[str] = Field(default_factory=list)
    specialisation: list[str] = Field(default_factory=list)
    years_of_experience: int = 0
    confirmed: bool = False
    qualifications: list[str] = Field(default_factory=list)
    created_at: str = ""
    bank_code: str = ""
    account_number: str = ""
    recipient_code: str | None = None


class Doctor(Person):
    about: str = ""
    awards: list[str] = Field(default_factory=list)
    consultation_fee: float | None = None
    facility: str = ""


class Chew(Person):
    case_visits: list[CaseVisit] = Field(default_factory=list)


class Patient(Person):
    pass


class PersonRow(BaseModel):
    """One line of the doctor / CHEW / patient tables."""

    id: int | str
    full_name: str
    profile_picture_url: str
    phone: str
    specialisation: list[str]
    years_of_experience: int
    created_at: str
    confirmed: bool


class PersonUpdate(BaseModel):
    """Editable profile fields; only fields that were sent are forwarded."""

    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    gender: str | None = None
    address: str | None = None
    country: str | None = None
    specialisation: list[str] | str | None = None
    languages: list[str] | str | None = None
    date_of_birth: str | None = None
    years_of_experience: int | None = None
    confirmed: bool | None = None
    about: str | None = None
    awards: list[str] | str | None = None
    consultation_fee: float | None = None
    facility: str | None = None
    bank_code: str | None = None
    account_number: str | None = None


class UserRegistration(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    date_of_birth: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    gender: str = Field(min_length=1)
    role: int = 3
