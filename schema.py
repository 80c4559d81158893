from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class DictionaryEntry(BaseModel):
    """One substance of the controlled vocabulary, as served by the dictionary feed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    slug: str
    canonical_name: str = Field(alias="canonical")
    alternate_names: List[str] = Field(default_factory=list, alias="names")
    classification_code: Optional[str] = Field(default=None, alias="atc")


class OCRCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    raw_confidence: float = Field(ge=0, le=100)
    strategy: str


class OCRAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    strategy: str
    confidence: float = 0.0
    failed: bool = False
    error: Optional[str] = None


class OCRResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = ""
    confidence: float = Field(default=0.0, ge=0, le=100)
    strategy: Optional[str] = None
    attempts: List[OCRAttempt] = Field(default_factory=list)


class DrugMatch(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    slug: str
    name: str
    confidence: float = Field(ge=0, le=1)
    classification_code: Optional[str] = Field(default=None, alias="atc")


class ImageInfo(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    size_bytes: int = Field(default=0, alias="sizeBytes")
    filename: Optional[str] = None


class ScanRaw(BaseModel):
    model_config = ConfigDict(frozen=True)

    ocr: Optional[OCRResult] = None
    image: Optional[ImageInfo] = None


class ScanResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    extracted_text: str = Field(alias="extractedText")
    confidence: float = Field(ge=0, le=100)
    created_at: datetime = Field(alias="createdAt")
    detected_drugs: List[DrugMatch] = Field(default_factory=list, alias="detectedDrugs")
    raw: Optional[ScanRaw] = None

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
