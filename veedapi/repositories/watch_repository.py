from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from veedapi.models.watch import WatchRecord as WatchRecordModel
from veedapi.schemas.watch import WatchRecord as WatchRecordSchema
from veedapi.repositories.base import BaseRepository


class WatchRecordRepository(BaseRepository[WatchRecordModel, WatchRecordSchema]):
    """시청 기록 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(WatchRecordModel, WatchRecordSchema, db)

    def exists_for_day(self, account_id: int, video_id: int, watch_day: date) -> bool:
        return self.exists(
            {"account_id": account_id, "video_id": video_id, "watch_day": watch_day}
        )

    def get_by_ledger_entry(self, ledger_entry_id: int) -> Optional[WatchRecordModel]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.ledger_entry_id == ledger_entry_id)
            .first()
        )

    def watched_video_ids(self, account_id: int, watch_day: date) -> List[int]:
        rows = (
            self.db.query(self.model_class.video_id)
            .filter(
                self.model_class.account_id == account_id,
                self.model_class.watch_day == watch_day,
            )
            .order_by(self.model_class.id)
            .all()
        )
        return [row[0] for row in rows]

    def cycle_totals(
        self, account_id: int, watch_day: date, plan_purchase_entry_id: Optional[int]
    ) -> Tuple[int, Decimal]:
        """해당 날짜, 해당 구독 주기의 시청 수와 보상 합계 (on_quota_complete 추천 보너스 기준)"""
        count, total = (
            self.db.query(
                func.count(self.model_class.id),
                func.coalesce(func.sum(self.model_class.reward_earned), 0),
            )
            .filter(
                self.model_class.account_id == account_id,
                self.model_class.watch_day == watch_day,
                self.model_class.plan_purchase_entry_id == plan_purchase_entry_id,
            )
            .one()
        )
        return int(count), Decimal(str(total))

    def get_history(
        self, account_id: int, limit: int = 50, offset: int = 0
    ) -> List[WatchRecordSchema]:
        rows = (
            self.db.query(self.model_class)
            .filter(self.model_class.account_id == account_id)
            .order_by(desc(self.model_class.id))
            .limit(limit)
            .offset(offset)
            .all()
        )
        return [self._to_schema(row) for row in rows]
