# forexhub/schemas/catalog.py
"""
Schemas for the download catalog: downloadable assets and their reviews.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Platform(str, Enum):
    """Trading platform an asset targets."""

    MT4 = "mt4"
    MT5 = "mt5"
    BOTH = "both"


class Download(BaseModel):
    """
    A downloadable asset (Expert Advisor, indicator).

    download_count only ever grows. rating is the mean of all reviews
    rounded to two decimals, 0.0 while there are none.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    slug: str
    description: str = ""
    file_url: str
    file_size: int | None = None
    platform: Platform
    version: str | None = None
    is_premium: bool = False
    download_count: int = 0
    rating: float = 0.0
    review_count: int = 0
    created_at: datetime
    updated_at: datetime


class DownloadCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    title: str = Field(..., min_length=1, max_length=300)
    slug: str | None = Field(None, max_length=200)
    description: str = ""
    file_url: str = Field(..., min_length=1, description="Storage path or external URL")
    file_size: int | None = Field(None, ge=0, description="Size in bytes")
    platform: Platform = Platform.MT4
    version: str | None = Field(None, max_length=40)
    is_premium: bool = False


class DownloadUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    title: str | None = Field(None, min_length=1, max_length=300)
    slug: str | None = Field(None, max_length=200)
    description: str | None = None
    file_url: str | None = Field(None, min_length=1)
    file_size: int | None = Field(None, ge=0)
    platform: Platform | None = None
    version: str | None = Field(None, max_length=40)
    is_premium: bool | None = None


class DownloadFilters(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    platform: Platform | None = None
    is_premium: bool | None = None


class Review(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    download_id: str
    user_id: str | None = None
    author_name: str | None = None
    rating: int
    body: str | None = None
    created_at: datetime
    updated_at: datetime


class ReviewSubmission(BaseModel):
    """Review as posted by a public reader; the download comes from the URL."""

    rating: int = Field(..., ge=1, le=5)
    body: str | None = Field(None, max_length=5000)
    author_name: str | None = Field(None, max_length=120)


class ReviewCreate(ReviewSubmission):
    download_id: str
    user_id: str | None = None


class ReviewUpdate(BaseModel):
    rating: int | None = Field(None, ge=1, le=5)
    body: str | None = Field(None, max_length=5000)


class ReviewFilters(BaseModel):
    download_id: str | None = None
    user_id: str | None = None
