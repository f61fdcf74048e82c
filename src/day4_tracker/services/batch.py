from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any

from sqlmodel import Session

from day4_tracker.core.errors import IngestionError
from day4_tracker.services.ingestion import create_record, unwrap
from day4_tracker.services.validation import validate_batch

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    total: int
    success: list[dict[str, Any]] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "total": self.total,
            "inserted": len(self.success),
            "failedCount": len(self.failed),
            "success": self.success,
            "failed": self.failed,
        }


def create_batch(session: Session, user_id: int, raw: Any) -> BatchReport:
    """Insert records one by one, in input order.

    The size bound is checked up front and rejects the whole call. After that
    every item gets its own outcome; a failing item is reported under its
    index and never stops the ones after it.
    """

    items = unwrap(validate_batch(raw))
    report = BatchReport(total=len(items))

    for index, item in enumerate(items):
        try:
            created = create_record(session, user_id, item)
        except IngestionError as e:
            session.rollback()
            report.failed.append({"index": index, "status": e.status_code, "code": e.code, "message": e.message})
            continue
        except Exception:
            logger.exception("batch item %d failed (user_id=%s)", index, user_id)
            session.rollback()
            report.failed.append({"index": index, "status": 500, "code": "internal_error", "message": "internal error"})
            continue

        report.success.append({"index": index, **created.to_dict()})

    if report.failed:
        logger.info(
            "batch for user_id=%s: %d inserted, %d failed",
            user_id,
            len(report.success),
            len(report.failed),
        )
    return report
