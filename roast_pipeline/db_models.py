"""
SQLAlchemy ORM models for stored roasts.

One roast_profiles row owns its profile_log, roast_events, roast_phases and
extra_device_data rows; deleting the profile deletes them.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class RoastProfileRecord(Base):
    """Summary row for one imported roast."""
    __tablename__ = "roast_profiles"

    roast_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    coffee_name: Mapped[str] = mapped_column(String(255))
    roaster_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    roaster_size: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    input_weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    output_weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    weight_unit: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    weight_loss_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    temperature_unit: Mapped[str] = mapped_column(String(1), default="F")
    roast_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    roast_uuid: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    roast_date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    data_source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    raw_milestone_indices: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    charge_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    dry_end_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fc_start_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fc_end_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sc_start_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sc_end_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    drop_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cool_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    charge_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    dry_end_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fc_start_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fc_end_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sc_start_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sc_end_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    drop_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cool_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    drying_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    maillard_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    development_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_roast_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    log_rows: Mapped[List["ProfileLogRecord"]] = relationship(
        "ProfileLogRecord", back_populates="profile", cascade="all, delete-orphan", passive_deletes=True
    )
    event_rows: Mapped[List["RoastEventRecord"]] = relationship(
        "RoastEventRecord", back_populates="profile", cascade="all, delete-orphan", passive_deletes=True
    )
    phase_rows: Mapped[List["RoastPhaseRecord"]] = relationship(
        "RoastPhaseRecord", back_populates="profile", cascade="all, delete-orphan", passive_deletes=True
    )
    device_rows: Mapped[List["ExtraDeviceRecord"]] = relationship(
        "ExtraDeviceRecord", back_populates="profile", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<RoastProfileRecord(roast_id={self.roast_id}, coffee_name='{self.coffee_name}')>"


class ProfileLogRecord(Base):
    """One temperature sample with its state flags."""
    __tablename__ = "profile_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    roast_id: Mapped[int] = mapped_column(ForeignKey("roast_profiles.roast_id", ondelete="CASCADE"), index=True)
    time_seconds: Mapped[float] = mapped_column(Float)
    bean_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    environmental_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ror_bean_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fan_setting: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    heat_setting: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    data_source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    start: Mapped[bool] = mapped_column(Boolean, default=False)
    charge: Mapped[bool] = mapped_column(Boolean, default=False)
    maillard: Mapped[bool] = mapped_column(Boolean, default=False)
    fc_start: Mapped[bool] = mapped_column(Boolean, default=False)
    fc_rolling: Mapped[bool] = mapped_column(Boolean, default=False)
    fc_end: Mapped[bool] = mapped_column(Boolean, default=False)
    sc_start: Mapped[bool] = mapped_column(Boolean, default=False)
    sc_end: Mapped[bool] = mapped_column(Boolean, default=False)
    drop: Mapped[bool] = mapped_column(Boolean, default=False)
    end: Mapped[bool] = mapped_column(Boolean, default=False)

    profile: Mapped["RoastProfileRecord"] = relationship("RoastProfileRecord", back_populates="log_rows")


class RoastEventRecord(Base):
    """Milestone or control event."""
    __tablename__ = "roast_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    roast_id: Mapped[int] = mapped_column(ForeignKey("roast_profiles.roast_id", ondelete="CASCADE"), index=True)
    time_seconds: Mapped[float] = mapped_column(Float)
    event_type: Mapped[int] = mapped_column(Integer)
    event_value: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    event_string: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    subcategory: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    user_generated: Mapped[bool] = mapped_column(Boolean, default=False)
    automatic: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    profile: Mapped["RoastProfileRecord"] = relationship("RoastProfileRecord", back_populates="event_rows")


class RoastPhaseRecord(Base):
    """Drying, Maillard or development phase."""
    __tablename__ = "roast_phases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    roast_id: Mapped[int] = mapped_column(ForeignKey("roast_profiles.roast_id", ondelete="CASCADE"), index=True)
    phase_name: Mapped[str] = mapped_column(String(50))
    phase_order: Mapped[int] = mapped_column(Integer)
    start_time: Mapped[float] = mapped_column(Float)
    end_time: Mapped[float] = mapped_column(Float)
    duration: Mapped[float] = mapped_column(Float)
    percentage_of_total: Mapped[float] = mapped_column(Float)
    calculation_method: Mapped[str] = mapped_column(String(50))
    confidence_score: Mapped[float] = mapped_column(Float)

    profile: Mapped["RoastProfileRecord"] = relationship("RoastProfileRecord", back_populates="phase_rows")


class ExtraDeviceRecord(Base):
    """One reading from an auxiliary channel."""
    __tablename__ = "extra_device_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    roast_id: Mapped[int] = mapped_column(ForeignKey("roast_profiles.roast_id", ondelete="CASCADE"), index=True)
    device_id: Mapped[int] = mapped_column(Integer)
    device_name: Mapped[str] = mapped_column(String(100))
    sensor_type: Mapped[str] = mapped_column(String(50))
    time_seconds: Mapped[float] = mapped_column(Float)
    value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    quality: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    profile: Mapped["RoastProfileRecord"] = relationship("RoastProfileRecord", back_populates="device_rows")
