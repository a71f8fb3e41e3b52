"""Runtime overrides from the owner (ad toggle, channels, ad gate credentials) on top of .env."""
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from nightpass.access.models import RuntimeConfig
from nightpass.core.config import Settings, settings as default_settings
from nightpass.models.runtime_config import RuntimeConfigRow

logger = logging.getLogger(__name__)

OVERRIDABLE_FIELDS = (
    "ad_enabled",
    "private_channel_ids",
    "channel_invite_links",
    "ad_gate_domain",
    "ad_gate_api_token",
)


def _split(value: str) -> tuple[str, ...]:
    return tuple(v.strip() for v in value.split(",") if v.strip())


class RuntimeConfigService:
    def __init__(self, db: Session, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or default_settings

    def get(self) -> RuntimeConfigRow | None:
        return self.db.query(RuntimeConfigRow).filter(RuntimeConfigRow.id == 1).first()

    def get_or_create(self) -> RuntimeConfigRow:
        row = self.get()
        if row:
            return row
        row = RuntimeConfigRow(id=1, version=0)
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return self.get()
        self.db.refresh(row)
        return row

    def snapshot(self) -> RuntimeConfig:
        """
        Effective config for one request. Falls back to .env values when the
        override table is unreadable, so a DB hiccup never blocks access checks.
        """
        try:
            self.db.expire_all()
            row = self.get()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("runtime_config_read_failed")
            row = None
        s = self.settings

        def pick(field: str) -> Any:
            value = getattr(row, field, None) if row is not None else None
            return value if value is not None else getattr(s, field)

        return RuntimeConfig(
            version=row.version if row is not None else 0,
            ad_enabled=bool(pick("ad_enabled")),
            private_channel_ids=_split(pick("private_channel_ids") or ""),
            channel_invite_links=_split(pick("channel_invite_links") or ""),
            ad_gate_domain=pick("ad_gate_domain") or "",
            ad_gate_api_token=pick("ad_gate_api_token") or "",
        )

    def update(self, data: dict[str, Any]) -> RuntimeConfig:
        """Apply overrides (None clears one back to .env) and bump version atomically."""
        unknown = set(data) - set(OVERRIDABLE_FIELDS)
        if unknown:
            raise ValueError(f"not overridable at runtime: {', '.join(sorted(unknown))}")
        values: dict[str, Any] = {}
        for field, value in data.items():
            if field == "ad_enabled" and value is not None:
                value = bool(value)
            values[field] = value
        values["version"] = RuntimeConfigRow.version + 1
        values["updated_at"] = datetime.now(timezone.utc)
        self.get_or_create()
        self.db.execute(update(RuntimeConfigRow).where(RuntimeConfigRow.id == 1).values(**values))
        self.db.commit()
        snapshot = self.snapshot()
        logger.info("runtime_config_updated", extra={"version": snapshot.version})
        return snapshot
