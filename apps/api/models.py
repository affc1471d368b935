from sqlalchemy import CheckConstraint, Column, Integer, Float, DateTime, ForeignKey, Numeric, Text, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.sql import func
from core.database import Base
import uuid
from typing import Optional


class Activity(Base):
    """An ingested endurance activity (run, trail run, ride)."""
    __tablename__ = "activity"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    athlete_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(Text, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    sport = Column(Text, default="run", nullable=False)
    duration_s = Column(Integer, nullable=True)
    distance_m = Column(Integer, nullable=True)
    total_elevation_gain = Column(Numeric, nullable=True)

    # --- LOCATION (weather lookup) ---
    start_lat = Column(Float, nullable=True)
    start_lng = Column(Float, nullable=True)
    start_elevation_m = Column(Float, nullable=True)

    # --- RELATIONSHIPS ---
    stream = relationship("ActivityStream", back_populates="activity", uselist=False)
    heat_impact = relationship("ActivityHeatImpact", back_populates="activity", uselist=False)

    @property
    def duration_minutes(self) -> Optional[float]:
        if self.duration_s is None:
            return None
        return self.duration_s / 60.0


class ActivityStream(Base):
    """
    Per-second stream data for an activity, one JSONB blob per activity.

    Example stream_data:
        {
            "time": [0, 1, 2, ...],
            "distance": [0.0, 2.8, 5.6, ...],
            "heartrate": [140, 141, 142, ...],
            "velocity_smooth": [3.1, 3.2, 3.1, ...],
            "altitude": [100.5, 100.7, 101.0, ...],
            "grade_smooth": [0.0, 0.2, 0.5, ...],
            "cadence": [88, 89, 88, ...]
        }
    """
    __tablename__ = "activity_stream"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    activity_id = Column(UUID(as_uuid=True), ForeignKey("activity.id"), nullable=False)

    # Dict of channel_name → array of values
    stream_data = Column(JSONB, nullable=False)
    channels_available = Column(JSONB, nullable=False, default=list)
    point_count = Column(Integer, nullable=False)

    source = Column(Text, nullable=False, default="strava")
    fetched_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    activity = relationship("Activity", back_populates="stream")

    __table_args__ = (
        UniqueConstraint('activity_id', name='uq_activity_stream_activity'),
    )


class ActivityHeatImpact(Base):
    """
    Persisted heat impact analysis for one activity.

    Headline numbers are real columns so historical comparison and
    acclimation queries never parse JSON; result_json holds the full
    HeatImpactAnalysis.to_dict() for serving.
    """
    __tablename__ = "activity_heat_impact"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    activity_id = Column(UUID(as_uuid=True), ForeignKey("activity.id"), nullable=False, unique=True)
    athlete_id = Column(UUID(as_uuid=True), nullable=False)

    # --- SCORE ---
    overall_score = Column(Integer, nullable=False)
    severity = Column(Text, nullable=False)  # LOW / MODERATE / HIGH / EXTREME
    heat_stress_component = Column(Integer, nullable=False)
    physiological_stress_component = Column(Integer, nullable=False)
    humidity_strain_score = Column(Integer, nullable=False)
    cooling_benefit_score = Column(Integer, nullable=False)
    normalized_score = Column(Float, nullable=True)

    # --- CORRELATION ---
    correlation_strength = Column(Float, nullable=False, default=0.0)
    primary_factor = Column(Text, nullable=False, default="NONE")

    # --- ACCLIMATION INPUTS ---
    hr_drift_magnitude_bpm = Column(Float, nullable=True)
    pace_degradation_percent = Column(Float, nullable=True)
    avg_temperature_c = Column(Float, nullable=True)
    avg_humidity_percent = Column(Float, nullable=True)

    result_json = Column(JSONB, nullable=False)

    # Bump when engine logic changes; stale rows are recomputed
    analysis_version = Column(Integer, nullable=False, default=1)
    analyzed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    activity = relationship("Activity", back_populates="heat_impact")

    __table_args__ = (
        Index("ix_activity_heat_impact_athlete_analyzed", "athlete_id", "analyzed_at"),
        CheckConstraint(
            "severity IN ('LOW', 'MODERATE', 'HIGH', 'EXTREME')",
            name='ck_activity_heat_impact_severity',
        ),
    )
