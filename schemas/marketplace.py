# Pydantic Schemas for the Campaign Engine
# Inputs accepted by the service layer

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal

from database.marketplace_models import (
    CampaignStatusDB as CampaignStatus,
    ApplicationStatusDB as ApplicationStatus,
    ContentStatusDB as ContentStatus,
    ContentTypeDB as ContentType,
    PostStatusDB as PostStatus,
    PaymentStatusDB as PaymentStatus,
)


class Pagination(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


# ============================================================================
# CAMPAIGN SCHEMAS
# ============================================================================

class CampaignCreate(BaseModel):
    """Brand creates a campaign. It always starts as a draft."""
    title: str = Field(..., min_length=1, max_length=255)
    objective: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    budget: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    max_influencers: Optional[int] = Field(None, ge=1)
    target_criteria: Optional[Dict[str, Any]] = None
    requirements: Optional[Dict[str, Any]] = None

    # Approval settings
    requires_approval: bool = True
    auto_approve_influencers: Optional[List[str]] = None
    approval_instructions: Optional[str] = None
    content_brief: Optional[str] = None

    # Accepted for compatibility, ignored: campaigns are created as drafts
    status: Optional[CampaignStatus] = None


class CampaignUpdate(BaseModel):
    """Editable fields. Status changes go through update_status."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    objective: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    budget: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    max_influencers: Optional[int] = Field(None, ge=1)
    target_criteria: Optional[Dict[str, Any]] = None
    requirements: Optional[Dict[str, Any]] = None
    requires_approval: Optional[bool] = None
    auto_approve_influencers: Optional[List[str]] = None
    approval_instructions: Optional[str] = None
    content_brief: Optional[str] = None


class CampaignFilter(Pagination):
    search: Optional[str] = None
    status: Optional[CampaignStatus] = None
    min_budget: Optional[Decimal] = None
    max_budget: Optional[Decimal] = None


# ============================================================================
# APPLICATION SCHEMAS
# ============================================================================

class ApplicationCreate(BaseModel):
    """Influencer applies to a campaign. Unknown keys are kept in application_data."""
    message: Optional[str] = Field(None, max_length=2000)
    proposed_deliverables: Optional[List[str]] = None

    class Config:
        extra = "allow"


# ============================================================================
# CONTENT SCHEMAS
# ============================================================================

class ContentSubmissionCreate(BaseModel):
    campaign_id: str
    content_type: ContentType
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    caption: Optional[str] = None
    hashtags: Optional[List[str]] = None
    platforms: Optional[List[str]] = None
    amount: Optional[Decimal] = Field(None, ge=0)


class ContentSubmissionUpdate(BaseModel):
    content_type: Optional[ContentType] = None
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    caption: Optional[str] = None
    hashtags: Optional[List[str]] = None
    platforms: Optional[List[str]] = None
    amount: Optional[Decimal] = Field(None, ge=0)


class ContentFilter(Pagination):
    status: Optional[ContentStatus] = None
    content_type: Optional[ContentType] = None
    campaign_id: Optional[str] = None
    search: Optional[str] = None


class ContentFileCreate(BaseModel):
    """Reference to a file the storage service already holds."""
    file_url: str = Field(..., max_length=1000)
    file_type: str = Field(..., max_length=100)
    file_size: Optional[int] = Field(None, ge=0)
    thumbnail_url: Optional[str] = Field(None, max_length=1000)


class PerformanceUpdate(BaseModel):
    """Latest metrics snapshot. Replaces whatever was stored before."""
    views: int = Field(0, ge=0)
    likes: int = Field(0, ge=0)
    comments: int = Field(0, ge=0)
    shares: int = Field(0, ge=0)
    engagement_rate: Optional[float] = Field(None, ge=0)
    reach: Optional[int] = Field(None, ge=0)
    impressions: Optional[int] = Field(None, ge=0)


class PublishedPostCreate(BaseModel):
    content_id: str
    platform: str = Field(..., max_length=50)
    post_url: str = Field(..., max_length=1000)
    platform_post_id: Optional[str] = None
    post_type: Optional[str] = None
    published_at: Optional[datetime] = None


class PublishedPostUpdate(BaseModel):
    post_url: Optional[str] = Field(None, max_length=1000)
    platform_post_id: Optional[str] = None
    post_type: Optional[str] = None
    status: Optional[PostStatus] = None


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================

class PaymentCreate(BaseModel):
    influencer_id: str
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=6)
    content_id: Optional[str] = None
    payment_method: Optional[str] = Field(None, max_length=30)


class PaymentProcess(BaseModel):
    transaction_id: Optional[str] = Field(None, max_length=255)
    payment_method: Optional[str] = Field(None, max_length=30)


class PaymentFilter(Pagination):
    status: Optional[PaymentStatus] = None
