"""Request and response models for the news studio relay."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NewsItem(BaseModel):
    """One scraped listing entry; rank is the 1-based emission order."""

    rank: int = Field(..., ge=1)
    title: str
    link: str = Field(..., description="Absolute article URL.")
    press: Optional[str] = None
    time: Optional[str] = None
    summary: str
    views: Optional[str] = None
    comments: Optional[str] = None


class ArticleBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    body_text: str = Field(..., alias="bodyText")
    url: str


class ArticleRequest(BaseModel):
    url: Optional[str] = None


class ModelRequest(BaseModel):
    """Fields every AI endpoint accepts."""

    model: Optional[str] = None


class TextRequest(ModelRequest):
    text: Optional[str] = None


class ScriptTransformRequest(TextRequest):
    model_config = ConfigDict(populate_by_name=True)

    concept: Optional[str] = None
    length_option: Optional[str] = Field(None, alias="lengthOption")
    style: Optional[str] = None
    instruction: Optional[str] = None


class ScriptNewRequest(ModelRequest):
    model_config = ConfigDict(populate_by_name=True)

    topic: Optional[str] = None
    concept: Optional[str] = None
    length_option: Optional[str] = Field(None, alias="lengthOption")
    style: Optional[str] = None
    instruction: Optional[str] = None


class ThumbnailRequest(TextRequest):
    model_config = ConfigDict(populate_by_name=True)

    length_option: Optional[str] = Field(None, alias="lengthOption")


class KeyCheckResponse(BaseModel):
    status: str
    message: str


class ScriptResponse(BaseModel):
    script: str


class StructureResponse(BaseModel):
    structure: str


class SummaryResponse(BaseModel):
    summary: str


class TitleIdeas(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    safe_titles: List[str] = Field(default_factory=list, alias="safeTitles")
    clickbait_titles: List[str] = Field(default_factory=list, alias="clickbaitTitles")


class ThumbnailCopies(BaseModel):
    emotional: List[str] = Field(default_factory=list)
    informational: List[str] = Field(default_factory=list)
    visual: List[str] = Field(default_factory=list)
