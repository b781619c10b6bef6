# sentinel/models.py
from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from .errors import AppendOnlyViolation


def utcnow() -> datetime:
    """Naive UTC timestamp (all DateTime columns are stored naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class AppendOnly:
    """Marker mixin: rows are inserted once and never updated or deleted."""


# -----------------------------
# Core enums
# -----------------------------
class DistressType(str, enum.Enum):
    probate = "probate"
    pre_foreclosure = "pre_foreclosure"
    tax_lien = "tax_lien"
    code_violation = "code_violation"
    vacant = "vacant"
    divorce = "divorce"
    bankruptcy = "bankruptcy"
    fsbo = "fsbo"
    absentee = "absentee"
    inherited = "inherited"


class LeadStatus(str, enum.Enum):
    prospect = "prospect"
    lead = "lead"
    negotiation = "negotiation"
    disposition = "disposition"
    nurture = "nurture"
    dead = "dead"
    closed = "closed"


ACTIVE_LEAD_STATUSES = (LeadStatus.prospect, LeadStatus.lead, LeadStatus.negotiation)


class SourceKind(str, enum.Enum):
    commercial = "commercial"  # thin, low-noise provider pulls
    crawler = "crawler"  # broad public-record crawling
    partner = "partner"  # pushed by partner systems


class IngestMode(str, enum.Enum):
    narrow = "narrow"
    broad = "broad"


class PromotionOutcome(str, enum.Enum):
    created = "created"
    updated = "updated"
    held = "held"


class JobRunStatus(str, enum.Enum):
    running = "running"
    success = "success"
    failed = "failed"


# -----------------------------
# Models
# -----------------------------
class Property(Base):
    __tablename__ = "properties"
    __table_args__ = (UniqueConstraint("parcel_id", "county", name="uq_property_parcel_county"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    parcel_id: Mapped[str] = mapped_column(String(64))
    county: Mapped[str] = mapped_column(String(80), index=True)
    is_synthetic_parcel: Mapped[bool] = mapped_column(Boolean, default=False)

    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(80), nullable=True)
    state: Mapped[str | None] = mapped_column(String(20), nullable=True)
    zipcode: Mapped[str | None] = mapped_column(String(10), nullable=True)

    owner_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    estimated_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    equity_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    loan_balance: Mapped[float | None] = mapped_column(Float, nullable=True)

    property_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    beds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    baths: Mapped[float | None] = mapped_column(Float, nullable=True)
    sqft: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year_built: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # provenance + absentee/vacant/high-equity style booleans, merged key-wise on upsert
    owner_flags_json: Mapped[str] = mapped_column(Text, default="{}")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


class DistressEvent(AppendOnly, Base):
    __tablename__ = "distress_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id"), index=True)

    event_type: Mapped[DistressType] = mapped_column(Enum(DistressType), index=True)
    severity: Mapped[int] = mapped_column(Integer)
    source: Mapped[str] = mapped_column(String(80), index=True)

    # sha256(parcel:county:type:source); the only dedup mechanism
    fingerprint: Mapped[str] = mapped_column(String(64), unique=True)

    confidence: Mapped[float] = mapped_column(Float, default=0.5)
    raw_payload_json: Mapped[str] = mapped_column(Text, default="{}")

    observed_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class ScoringRecord(AppendOnly, Base):
    __tablename__ = "scoring_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id"), index=True)
    model_version: Mapped[str] = mapped_column(String(40), index=True)

    composite: Mapped[int] = mapped_column(Integer)
    label: Mapped[str] = mapped_column(String(10))
    motivation_score: Mapped[int] = mapped_column(Integer)
    deal_score: Mapped[int] = mapped_column(Integer)

    severity_multiplier: Mapped[float] = mapped_column(Float)
    recency_decay: Mapped[float] = mapped_column(Float)
    stacking_bonus: Mapped[float] = mapped_column(Float)
    owner_factor_score: Mapped[float] = mapped_column(Float)
    equity_factor_score: Mapped[float] = mapped_column(Float)
    ai_boost: Mapped[float] = mapped_column(Float)

    # ordered [{"name", "value", "contribution"}, ...]
    factors_json: Mapped[str] = mapped_column(Text, default="[]")
    # equity/comp/conversion/as_of snapshot used for this computation
    inputs_json: Mapped[str] = mapped_column(Text, default="{}")

    actor: Mapped[str] = mapped_column(String(80))
    scored_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


class ScoringPrediction(AppendOnly, Base):
    __tablename__ = "scoring_predictions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id"), index=True)
    model_version: Mapped[str] = mapped_column(String(40), index=True)

    predictive_score: Mapped[int] = mapped_column(Integer)
    days_until_distress: Mapped[int] = mapped_column(Integer)
    confidence: Mapped[int] = mapped_column(Integer)
    label: Mapped[str] = mapped_column(String(12))

    owner_age_inference: Mapped[int | None] = mapped_column(Integer, nullable=True)
    equity_burn_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    absentee_duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tax_delinquency_trend: Mapped[float | None] = mapped_column(Float, nullable=True)
    life_event_probability: Mapped[float | None] = mapped_column(Float, nullable=True)

    features_json: Mapped[str] = mapped_column(Text, default="{}")
    factors_json: Mapped[str] = mapped_column(Text, default="[]")

    actor: Mapped[str] = mapped_column(String(80))
    predicted_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


class Lead(Base):
    """
    Workflow row owned by the CRM. This pipeline only creates rows in `prospect`
    and afterwards touches `priority` and `tags_json`.
    """
    __tablename__ = "leads"
    __table_args__ = (
        Index(
            "uq_lead_active_property",
            "property_id",
            unique=True,
            sqlite_where=text("status IN ('prospect', 'lead', 'negotiation')"),
            postgresql_where=text("status IN ('prospect', 'lead', 'negotiation')"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id"), index=True)

    status: Mapped[LeadStatus] = mapped_column(Enum(LeadStatus), default=LeadStatus.prospect, index=True)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    tags_json: Mapped[str] = mapped_column(Text, default="[]")
    source: Mapped[str] = mapped_column(String(80))

    assigned_to: Mapped[str | None] = mapped_column(String(80), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    promoted_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class PromotionDecision(AppendOnly, Base):
    __tablename__ = "promotion_decisions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id"), index=True)
    lead_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    source: Mapped[str] = mapped_column(String(80))
    source_kind: Mapped[SourceKind] = mapped_column(Enum(SourceKind))

    composite: Mapped[int] = mapped_column(Integer)
    predictive_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    blended: Mapped[int] = mapped_column(Integer)
    threshold: Mapped[int] = mapped_column(Integer)

    decision: Mapped[str] = mapped_column(String(10))  # promote|hold
    outcome: Mapped[PromotionOutcome] = mapped_column(Enum(PromotionOutcome))
    signals_json: Mapped[str] = mapped_column(Text, default="[]")

    actor: Mapped[str] = mapped_column(String(80))
    decided_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


class EventLog(AppendOnly, Base):
    """Generic audit log: (actor, action, entity type, entity id, detail, timestamp)."""
    __tablename__ = "event_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor: Mapped[str] = mapped_column(String(80), index=True)
    action: Mapped[str] = mapped_column(String(80), index=True)
    entity_type: Mapped[str] = mapped_column(String(40))
    entity_id: Mapped[str] = mapped_column(String(80), index=True)
    detail_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


class JobRun(Base):
    """
    Tracks job executions (ingestion cycles, replays, prediction batches).
    """
    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(80), index=True)

    status: Mapped[JobRunStatus] = mapped_column(Enum(JobRunStatus), default=JobRunStatus.running, index=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # store error stack or message
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # optional metadata: {"counties": [...], "mode": ...}
    meta_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary_json: Mapped[str | None] = mapped_column(Text, nullable=True)


@event.listens_for(Session, "before_flush")
def _guard_append_only(session: Session, flush_context, instances) -> None:
    for obj in session.deleted:
        if isinstance(obj, AppendOnly):
            raise AppendOnlyViolation(f"delete of append-only {type(obj).__name__} id={obj.id}")
    for obj in session.dirty:
        if isinstance(obj, AppendOnly) and session.is_modified(obj, include_collections=False):
            raise AppendOnlyViolation(f"update of append-only {type(obj).__name__} id={obj.id}")
