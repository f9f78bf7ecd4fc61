# Marketplace Models for the Campaign Engine
# Campaigns, applications, participants, content submissions, payments and earnings

from sqlalchemy import (
    Column, String, Integer, BigInteger, DateTime, ForeignKey, Text, JSON, Boolean,
    Float, Numeric, Index, UniqueConstraint, text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

# Use the same Base from the core models
from database.models import Base, generate_uuid, enum_column


MONEY = Numeric(18, 6)


# ============================================================================
# ENUMS
# ============================================================================

class CampaignStatusDB(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApplicationStatusDB(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ParticipantStatusDB(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    REMOVED = "removed"


class ContentStatusDB(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    PAID = "paid"


class ContentTypeDB(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"
    CAROUSEL = "carousel"
    STORY = "story"
    REEL = "reel"
    TEXT = "text"


class PostStatusDB(str, enum.Enum):
    PUBLISHED = "published"
    REMOVED = "removed"
    ARCHIVED = "archived"


class PaymentStatusDB(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


ACTIVE_PAYMENT_STATUSES = (
    PaymentStatusDB.PENDING,
    PaymentStatusDB.PROCESSING,
    PaymentStatusDB.COMPLETED,
)


# ============================================================================
# CAMPAIGN
# ============================================================================

class Campaign(Base):
    """Marketing campaign created by a brand and open to influencer applications."""
    __tablename__ = "campaigns"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    brand_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    objective = Column(String(500), nullable=False)
    description = Column(Text)

    budget = Column(MONEY)
    start_date = Column(DateTime)
    end_date = Column(DateTime, index=True)
    max_influencers = Column(Integer)

    target_criteria = Column(JSON)  # {"niches": [...], "min_followers": ...}
    requirements = Column(JSON)

    # Approval settings
    requires_approval = Column(Boolean, nullable=False, default=True)
    auto_approve_influencers = Column(JSON)  # influencer user ids
    approval_instructions = Column(Text)
    content_brief = Column(Text)

    status = Column(enum_column(CampaignStatusDB, "campaignstatusdb"), nullable=False, default=CampaignStatusDB.DRAFT, index=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    brand = relationship("User", backref="campaigns")
    applications = relationship("CampaignApplication", back_populates="campaign", cascade="all, delete-orphan")
    participants = relationship("CampaignParticipant", back_populates="campaign", cascade="all, delete-orphan")
    content_submissions = relationship("ContentSubmission", back_populates="campaign", cascade="all, delete-orphan")


# ============================================================================
# APPLICATIONS & PARTICIPANTS
# ============================================================================

class CampaignApplication(Base):
    """An influencer's request to join a campaign."""
    __tablename__ = "campaign_applications"
    __table_args__ = (
        UniqueConstraint("campaign_id", "influencer_id", name="uq_application_campaign_influencer"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    influencer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(enum_column(ApplicationStatusDB, "applicationstatusdb"), nullable=False, default=ApplicationStatusDB.PENDING)
    application_data = Column(JSON)  # message, proposed_deliverables, extras
    response_message = Column(Text)

    applied_at = Column(DateTime, server_default=func.now())
    responded_at = Column(DateTime)

    # Relationships
    campaign = relationship("Campaign", back_populates="applications")
    influencer = relationship("User")


class CampaignParticipant(Base):
    """An influencer accepted into a campaign. Only created by accepting an application."""
    __tablename__ = "campaign_participants"
    __table_args__ = (
        UniqueConstraint("campaign_id", "influencer_id", name="uq_participant_campaign_influencer"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    influencer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(enum_column(ParticipantStatusDB, "participantstatusdb"), nullable=False, default=ParticipantStatusDB.ACTIVE)
    joined_at = Column(DateTime, server_default=func.now())

    # Relationships
    campaign = relationship("Campaign", back_populates="participants")
    influencer = relationship("User")


# ============================================================================
# CONTENT SUBMISSIONS
# ============================================================================

class ContentSubmission(Base):
    """A unit of creative work submitted by a participant against a campaign."""
    __tablename__ = "content_submissions"
    __table_args__ = (
        UniqueConstraint("campaign_id", "influencer_id", name="uq_submission_campaign_influencer"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    influencer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255))
    description = Column(Text)
    caption = Column(Text)
    hashtags = Column(JSON)
    platforms = Column(JSON)
    content_type = Column(enum_column(ContentTypeDB, "contenttypedb"), nullable=False)

    status = Column(enum_column(ContentStatusDB, "contentstatusdb"), nullable=False, default=ContentStatusDB.PENDING, index=True)
    amount = Column(MONEY)
    feedback = Column(Text)

    submitted_at = Column(DateTime, server_default=func.now())
    approved_at = Column(DateTime)
    completed_at = Column(DateTime)
    paid_at = Column(DateTime)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    campaign = relationship("Campaign", back_populates="content_submissions")
    influencer = relationship("User")
    files = relationship("ContentFile", back_populates="content", cascade="all, delete-orphan")
    performance = relationship("ContentPerformance", back_populates="content", uselist=False, cascade="all, delete-orphan")
    published_posts = relationship("PublishedPost", back_populates="content", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="content")


class ContentFile(Base):
    """File reference attached to a submission. Upload itself happens in the storage service."""
    __tablename__ = "content_files"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    content_id = Column(String(36), ForeignKey("content_submissions.id", ondelete="CASCADE"), nullable=False, index=True)

    file_url = Column(String(1000), nullable=False)
    file_type = Column(String(100), nullable=False)  # mime type
    file_size = Column(BigInteger)
    thumbnail_url = Column(String(1000))

    created_at = Column(DateTime, server_default=func.now())

    content = relationship("ContentSubmission", back_populates="files")


class _PerformanceColumns:
    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    comments = Column(Integer, nullable=False, default=0)
    shares = Column(Integer, nullable=False, default=0)
    engagement_rate = Column(Float)
    reach = Column(Integer)
    impressions = Column(Integer)
    last_updated = Column(DateTime)


class ContentPerformance(_PerformanceColumns, Base):
    """Latest reported metrics for a submission (one row per submission)."""
    __tablename__ = "content_performance"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    content_id = Column(String(36), ForeignKey("content_submissions.id", ondelete="CASCADE"), unique=True, nullable=False)

    content = relationship("ContentSubmission", back_populates="performance")


# ============================================================================
# PUBLISHED POSTS
# ============================================================================

class PublishedPost(Base):
    """A live social-media post evidencing a submission's publication."""
    __tablename__ = "published_posts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    content_id = Column(String(36), ForeignKey("content_submissions.id", ondelete="CASCADE"), nullable=False, index=True)

    platform = Column(String(50), nullable=False)
    post_url = Column(String(1000), nullable=False)
    platform_post_id = Column(String(255))
    post_type = Column(String(50))  # POST, STORY, REEL, ...
    published_at = Column(DateTime, nullable=False)
    status = Column(enum_column(PostStatusDB, "poststatusdb"), nullable=False, default=PostStatusDB.PUBLISHED)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    content = relationship("ContentSubmission", back_populates="published_posts")
    performance = relationship("PostPerformance", back_populates="post", uselist=False, cascade="all, delete-orphan")


class PostPerformance(_PerformanceColumns, Base):
    """Latest reported metrics for a published post."""
    __tablename__ = "post_performance"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    post_id = Column(String(36), ForeignKey("published_posts.id", ondelete="CASCADE"), unique=True, nullable=False)

    post = relationship("PublishedPost", back_populates="performance")


# ============================================================================
# PAYMENTS & EARNINGS
# ============================================================================

class Payment(Base):
    """Brand-to-influencer payment for completed work, net of platform fee."""
    __tablename__ = "payments"
    __table_args__ = (
        # At most one live payment per submission
        Index(
            "uq_payments_active_content",
            "content_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'processing', 'completed')"),
            sqlite_where=text("status IN ('pending', 'processing', 'completed')"),
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    content_id = Column(String(36), ForeignKey("content_submissions.id", ondelete="SET NULL"), nullable=True)
    influencer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    brand_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(MONEY, nullable=False)
    platform_fee = Column(MONEY, nullable=False)  # derived: amount * fee rate
    net_amount = Column(MONEY, nullable=False)    # derived: amount - platform_fee
    currency = Column(String(3), default="KES")
    payment_method = Column(String(30))

    status = Column(enum_column(PaymentStatusDB, "paymentstatusdb"), nullable=False, default=PaymentStatusDB.PENDING, index=True)
    transaction_id = Column(String(255))
    failure_reason = Column(Text)

    processing_started_at = Column(DateTime)
    processed_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    content = relationship("ContentSubmission", back_populates="payments")
    influencer = relationship("User", foreign_keys=[influencer_id])
    brand = relationship("User", foreign_keys=[brand_id])


class UserEarnings(Base):
    """Running earnings ledger, one row per influencer."""
    __tablename__ = "user_earnings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    total_earned = Column(MONEY, nullable=False, default=0)
    total_paid = Column(MONEY, nullable=False, default=0)
    pending_amount = Column(MONEY, nullable=False, default=0)
    last_payout_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", backref="earnings")


# ============================================================================
# NOTIFICATION
# ============================================================================

class Notification(Base):
    """User notifications."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String(50), nullable=False)  # application_accepted, payment_received, etc.
    title = Column(String(200), nullable=False)
    message = Column(Text)
    data = Column(JSON)  # Additional context (campaign_id, amount, etc.)

    read = Column(Boolean, default=False)
    read_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    user = relationship("User", backref="notifications")
