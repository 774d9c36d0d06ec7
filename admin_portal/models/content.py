from pydantic import BaseModel


class Article(BaseModel):
    """Health tip shown in the patient app."""

    id: int | str
    title: str = ""
    description: str = ""
    category: str = ""
    feature_image_url: str = ""


class Advertisement(BaseModel):
    id: int | str
    text: str = ""
    image_url: str = ""
    created_at: str = ""
