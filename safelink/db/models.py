"""
Database Models for SafeLink

This module defines the SQLModel database schemas for:
- Link: Maps an original URL to its short code, with expiry and last access
- LinkClick: Click counter per link, kept off the link row

Design Decisions:
- short_code is assigned in the same transaction that inserts the row (it is a
  function of the generated id), so it is nullable at the column level but never
  visible as NULL to other transactions
- Separate LinkClick table so concurrent redirects don't contend on the link row
- Indexes on short_code (redirect path) and original_url (dedup on submit)
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlmodel import Column, Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Link(SQLModel, table=True):
    """
    Main table storing URL shortening mappings.

    Fields:
    - id: Auto-incrementing primary key (input of the short code digest)
    - original_url: Validated, canonical URL
    - short_code: Unique code derived from id and the server secret
    - created_at: Timestamp when the link was stored
    - expires_at: Optional; an expired link is never resolved
    - last_accessed_at: Updated on every successful resolution
    """
    __tablename__ = "links"

    id: Optional[int] = Field(default=None, primary_key=True)
    original_url: str = Field(sa_column=Column(Text, nullable=False, index=True))
    short_code: Optional[str] = Field(
        default=None,
        sa_column=Column(String(16), nullable=True, unique=True, index=True),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True, index=True)
    )
    last_accessed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class LinkClick(SQLModel, table=True):
    """Click counter keyed by link id, incremented with insert-or-add-one."""
    __tablename__ = "link_clicks"

    link_id: int = Field(
        sa_column=Column(Integer, ForeignKey("links.id", ondelete="CASCADE"), primary_key=True)
    )
    clicks: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
