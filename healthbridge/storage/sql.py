"""
SQLAlchemy-backed stores (SQLite by default).

Domain records are stored as JSON payloads in their camelCase wire form, with
the columns needed for filtering and ordering pulled out alongside.
"""

from collections.abc import Sequence

import structlog
from sqlalchemy import JSON, BigInteger, Column, Integer, String, create_engine, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from healthbridge.domain.models import (
    EmergencyAlert,
    HealthAlert,
    Threshold,
    UserHealthProfile,
    VitalReading,
    VitalType,
    default_thresholds,
)
from healthbridge.errors import NotFoundError, UpstreamFailure

logger = structlog.get_logger(__name__)

Base = declarative_base()


class VitalReadingRow(Base):
    __tablename__ = "vital_readings"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, index=True, nullable=False)
    type = Column(String, index=True, nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    payload = Column(JSON, nullable=False)


class ThresholdRow(Base):
    __tablename__ = "thresholds"

    user_id = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)


class UserProfileRow(Base):
    __tablename__ = "user_profiles"

    user_id = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)


class HealthAlertRow(Base):
    __tablename__ = "health_alerts"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(String, index=True)
    phone_number = Column(String, index=True)
    timestamp = Column(BigInteger, nullable=False)
    payload = Column(JSON, nullable=False)


class EmergencyAlertRow(Base):
    __tablename__ = "emergency_alerts"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(String, index=True)
    phone_number = Column(String, index=True)
    timestamp = Column(BigInteger, nullable=False)
    payload = Column(JSON, nullable=False)


class AlertSequenceRow(Base):
    __tablename__ = "alert_sequences"

    prefix = Column(String, primary_key=True)
    value = Column(Integer, nullable=False, default=0)


def _dump(model: object) -> dict:
    return model.model_dump(mode="json", by_alias=True)  # type: ignore[attr-defined]


class SqlDatabase:
    """Engine and session factory shared by the SQL stores."""

    def __init__(self, url: str, echo: bool = False) -> None:
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        engine_kwargs: dict = {"echo": echo, "connect_args": connect_args}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            # A single shared connection keeps an in-memory database alive.
            engine_kwargs["poolclass"] = StaticPool
        self.url = url
        self.engine = create_engine(url, **engine_kwargs)
        self.sessions = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)
        logger.info("database_ready", url=self.engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self.engine.dispose()


class SqlReadingStore:
    def __init__(self, db: SqlDatabase, history_limit: int = 1000) -> None:
        self.db = db
        self.history_limit = history_limit

    def append(self, user_id: str, reading: VitalReading) -> None:
        with self.db.sessions.begin() as session:
            session.add(
                VitalReadingRow(
                    user_id=user_id,
                    type=reading.type.value,
                    timestamp=reading.timestamp,
                    payload=_dump(reading),
                )
            )
            session.flush()
            self._evict(session, user_id)

    def _evict(self, session: Session, user_id: str) -> None:
        count = session.scalar(
            select(func.count()).select_from(VitalReadingRow).where(VitalReadingRow.user_id == user_id)
        )
        excess = (count or 0) - self.history_limit
        if excess <= 0:
            return
        oldest = select(VitalReadingRow.seq).where(VitalReadingRow.user_id == user_id)
        oldest = oldest.order_by(VitalReadingRow.seq).limit(excess)
        session.execute(
            delete(VitalReadingRow)
            .where(VitalReadingRow.seq.in_(oldest))
            .execution_options(synchronize_session=False)
        )

    def recent(self, user_id: str, vital_type: VitalType, limit: int) -> list[VitalReading]:
        if limit <= 0:
            return []
        with self.db.sessions() as session:
            rows = session.scalars(
                select(VitalReadingRow)
                .where(VitalReadingRow.user_id == user_id, VitalReadingRow.type == vital_type.value)
                .order_by(VitalReadingRow.seq.desc())
                .limit(limit)
            ).all()
        return [VitalReading.model_validate(row.payload) for row in reversed(rows)]

    def history(
        self,
        user_id: str,
        vital_type: VitalType | None = None,
        since: int | None = None,
        limit: int = 100,
    ) -> list[VitalReading]:
        query = select(VitalReadingRow).where(VitalReadingRow.user_id == user_id)
        if vital_type is not None:
            query = query.where(VitalReadingRow.type == vital_type.value)
        if since is not None:
            query = query.where(VitalReadingRow.timestamp >= since)
        query = query.order_by(VitalReadingRow.timestamp.desc(), VitalReadingRow.seq.desc())
        with self.db.sessions() as session:
            rows = session.scalars(query.limit(limit)).all()
        return [VitalReading.model_validate(row.payload) for row in rows]

    def latest_by_type(self, user_id: str) -> dict[VitalType, VitalReading]:
        try:
            with self.db.sessions() as session:
                rows = session.scalars(
                    select(VitalReadingRow)
                    .where(VitalReadingRow.user_id == user_id)
                    .order_by(VitalReadingRow.timestamp, VitalReadingRow.seq)
                ).all()
        except SQLAlchemyError as e:
            raise UpstreamFailure(f"reading lookup failed for {user_id}: {e}") from e
        latest: dict[VitalType, VitalReading] = {}
        for row in rows:
            reading = VitalReading.model_validate(row.payload)
            latest[reading.type] = reading
        return latest

    def has_user(self, user_id: str) -> bool:
        with self.db.sessions() as session:
            found = session.scalar(
                select(VitalReadingRow.seq).where(VitalReadingRow.user_id == user_id).limit(1)
            )
        return found is not None


class SqlThresholdStore:
    def __init__(self, db: SqlDatabase) -> None:
        self.db = db

    def thresholds_for(self, user_id: str) -> list[Threshold]:
        with self.db.sessions() as session:
            row = session.get(ThresholdRow, user_id)
        if row is None:
            return default_thresholds()
        return [Threshold.model_validate(item) for item in row.payload]

    def replace_thresholds(self, user_id: str, thresholds: Sequence[Threshold]) -> None:
        with self.db.sessions.begin() as session:
            session.merge(ThresholdRow(user_id=user_id, payload=[_dump(t) for t in thresholds]))


class SqlProfileStore:
    def __init__(self, db: SqlDatabase) -> None:
        self.db = db

    def get(self, user_id: str) -> UserHealthProfile | None:
        with self.db.sessions() as session:
            row = session.get(UserProfileRow, user_id)
        return None if row is None else UserHealthProfile.model_validate(row.payload)

    def get_or_create(self, user_id: str, cooldown_ms: int) -> UserHealthProfile:
        profile = self.get(user_id)
        if profile is None:
            profile = UserHealthProfile(user_id=user_id, notification_cooldown_ms=cooldown_ms)
            self.save(profile)
            logger.info("profile_created", user_id=user_id)
        return profile

    def save(self, profile: UserHealthProfile) -> None:
        with self.db.sessions.begin() as session:
            session.merge(UserProfileRow(user_id=profile.user_id, payload=_dump(profile)))


class SqlAlertStore:
    def __init__(self, db: SqlDatabase) -> None:
        self.db = db

    def new_alert_id(self, prefix: str) -> str:
        with self.db.sessions.begin() as session:
            row = session.get(AlertSequenceRow, prefix)
            if row is None:
                row = AlertSequenceRow(prefix=prefix, value=0)
                session.add(row)
            row.value += 1
            value = row.value
        return f"{prefix}-{value}"

    def add_health_alert(self, alert: HealthAlert) -> None:
        with self.db.sessions.begin() as session:
            session.add(
                HealthAlertRow(
                    id=alert.id,
                    user_id=alert.user_id,
                    phone_number=alert.phone_number,
                    timestamp=alert.timestamp,
                    payload=_dump(alert),
                )
            )

    def list_health_alerts(
        self, user_id: str | None = None, phone_number: str | None = None
    ) -> list[HealthAlert]:
        query = select(HealthAlertRow)
        if user_id is not None:
            query = query.where(HealthAlertRow.user_id == user_id)
        if phone_number is not None:
            query = query.where(HealthAlertRow.phone_number == phone_number)
        query = query.order_by(HealthAlertRow.timestamp.desc(), HealthAlertRow.seq.desc())
        with self.db.sessions() as session:
            rows = session.scalars(query).all()
        return [HealthAlert.model_validate(row.payload) for row in rows]

    def acknowledge(self, alert_id: str, acknowledged: bool | None) -> HealthAlert:
        with self.db.sessions.begin() as session:
            row = session.scalar(select(HealthAlertRow).where(HealthAlertRow.id == alert_id))
            if row is None:
                raise NotFoundError("Alert not found")
            alert = HealthAlert.model_validate(row.payload)
            if acknowledged is not None and alert.acknowledged != acknowledged:
                alert = alert.model_copy(update={"acknowledged": acknowledged})
                row.payload = _dump(alert)
        return alert

    def add_emergency_alert(self, alert: EmergencyAlert) -> None:
        with self.db.sessions.begin() as session:
            session.add(
                EmergencyAlertRow(
                    id=alert.id,
                    user_id=alert.user_id,
                    phone_number=alert.phone_number,
                    timestamp=alert.timestamp,
                    payload=_dump(alert),
                )
            )

    def update_emergency_alert(self, alert: EmergencyAlert) -> None:
        with self.db.sessions.begin() as session:
            row = session.scalar(select(EmergencyAlertRow).where(EmergencyAlertRow.id == alert.id))
            if row is None:
                raise NotFoundError(f"Emergency alert {alert.id} not found")
            row.payload = _dump(alert)

    def list_emergency_alerts(
        self, user_id: str | None = None, phone_number: str | None = None
    ) -> list[EmergencyAlert]:
        query = select(EmergencyAlertRow)
        if user_id is not None:
            query = query.where(EmergencyAlertRow.user_id == user_id)
        if phone_number is not None:
            query = query.where(EmergencyAlertRow.phone_number == phone_number)
        query = query.order_by(EmergencyAlertRow.timestamp.desc(), EmergencyAlertRow.seq.desc())
        with self.db.sessions() as session:
            rows = session.scalars(query).all()
        return [EmergencyAlert.model_validate(row.payload) for row in rows]
