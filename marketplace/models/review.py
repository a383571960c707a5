from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Boolean, Enum, JSON, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
import uuid
from marketplace.db.base_class import Base


class TargetType(str, enum.Enum):
    PRODUCT = "PRODUCT"
    SHOP = "SHOP"


class ReviewStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Review(Base):
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Polymorphic target: no foreign key, resolved through target_type
    target_type = Column(Enum(TargetType), nullable=False)
    target_id = Column(Integer, nullable=False)

    rating = Column(Integer, nullable=False)  # 1-5 stars
    title = Column(String(100), nullable=False)
    comment = Column(Text, nullable=False)
    images = Column(JSON, default=list)

    helpful = Column(Integer, default=0, nullable=False)
    unhelpful = Column(Integer, default=0, nullable=False)
    status = Column(Enum(ReviewStatus), default=ReviewStatus.APPROVED, nullable=False)
    is_verified_purchase = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    reviewer = relationship("User", back_populates="reviews")

    @property
    def reviewer_name(self):
        return self.reviewer.full_name if self.reviewer else None

    # Ensure one review per reviewer per target
    __table_args__ = (
        UniqueConstraint("reviewer_id", "target_type", "target_id", name="unique_reviewer_target_review"),
    )


Index("ix_reviews_target", Review.target_type, Review.target_id)
Index("ix_reviews_target_status_created_at", Review.target_type, Review.target_id, Review.status, Review.created_at)
