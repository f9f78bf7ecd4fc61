# Schemas module for the Campaign Engine
# Organizes all Pydantic schemas in a modular structure

from schemas.marketplace import (
    # Enums
    CampaignStatus,
    ApplicationStatus,
    ContentStatus,
    ContentType,
    PostStatus,
    PaymentStatus,

    Pagination,

    # Campaign schemas
    CampaignCreate,
    CampaignUpdate,
    CampaignFilter,

    # Application schemas
    ApplicationCreate,

    # Content schemas
    ContentSubmissionCreate,
    ContentSubmissionUpdate,
    ContentFilter,
    ContentFileCreate,
    PerformanceUpdate,
    PublishedPostCreate,
    PublishedPostUpdate,

    # Payment schemas
    PaymentCreate,
    PaymentProcess,
    PaymentFilter,
)

__all__ = [
    "CampaignStatus",
    "ApplicationStatus",
    "ContentStatus",
    "ContentType",
    "PostStatus",
    "PaymentStatus",
    "Pagination",
    "CampaignCreate",
    "CampaignUpdate",
    "CampaignFilter",
    "ApplicationCreate",
    "ContentSubmissionCreate",
    "ContentSubmissionUpdate",
    "ContentFilter",
    "ContentFileCreate",
    "PerformanceUpdate",
    "PublishedPostCreate",
    "PublishedPostUpdate",
    "PaymentCreate",
    "PaymentProcess",
    "PaymentFilter",
]
