"""
用户资料数据库模型（匹配用的用户目录）
"""
from sqlalchemy import Column, String, DateTime, JSON
from datetime import datetime, timezone

from .base import Base


class ProfileModel(Base):
    __tablename__ = "profiles"

    user_id = Column(String(64), primary_key=True, comment="外部身份提供方给出的用户ID")
    display_name = Column(String(100), nullable=True, comment="展示名")
    location = Column(String(100), nullable=False, index=True, comment="所在地（原样保存）")
    location_key = Column(String(100), nullable=False, index=True, comment="所在地（小写，用于匹配）")
    interests = Column(JSON, nullable=False, default=list, comment="兴趣标签（已归一化）")

    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    def __repr__(self):
        return f"<ProfileModel(user_id='{self.user_id}', location='{self.location}')>"
