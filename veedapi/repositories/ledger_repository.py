"""
원장 리포지토리 - 원장 항목 저장 및 조회

핵심 특징:
- 항목 추가는 flush 까지만 수행 (commit 은 서비스의 unit_of_work)
- event_key 로 기존 항목을 찾아 멱등성 보장
- completed 합계 계산으로 잔액 정합성 검증
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from veedapi.models.ledger import (
    LedgerEntry as LedgerEntryModel,
    LedgerKind,
    LedgerStatus,
)
from veedapi.schemas.ledger import LedgerEntry as LedgerEntrySchema
from veedapi.repositories.base import BaseRepository


class LedgerRepository(BaseRepository[LedgerEntryModel, LedgerEntrySchema]):
    """원장 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(LedgerEntryModel, LedgerEntrySchema, db)

    def get_by_event_key(self, event_key: str) -> Optional[LedgerEntryModel]:
        """멱등성 키로 기존 항목 조회"""
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.event_key == event_key)
            .first()
        )

    def get_for_update(self, entry_id: int) -> Optional[LedgerEntryModel]:
        return self.get_model_for_update(entry_id)

    def get_user_entries(
        self, account_id: int, limit: int = 50, offset: int = 0
    ) -> List[LedgerEntrySchema]:
        """계정 원장 조회 (최신순)"""
        rows = (
            self.db.query(self.model_class)
            .filter(self.model_class.account_id == account_id)
            .order_by(desc(self.model_class.id))
            .limit(limit)
            .offset(offset)
            .all()
        )
        return [self._to_schema(row) for row in rows]

    def count_for_account(self, account_id: int) -> int:
        return self.count({"account_id": account_id})

    def completed_sum(self, account_id: int) -> Decimal:
        """completed 항목 amount 합계 (잔액과 같아야 함)"""
        total = (
            self.db.query(func.coalesce(func.sum(self.model_class.amount), 0))
            .filter(
                self.model_class.account_id == account_id,
                self.model_class.status == LedgerStatus.COMPLETED,
            )
            .scalar()
        )
        return Decimal(str(total))

    def completed_count(self, account_id: int) -> int:
        return self.count(
            {"account_id": account_id, "status": LedgerStatus.COMPLETED}
        )

    def completed_sums_by_account(self) -> Dict[int, Decimal]:
        rows = (
            self.db.query(
                self.model_class.account_id,
                func.coalesce(func.sum(self.model_class.amount), 0),
            )
            .filter(self.model_class.status == LedgerStatus.COMPLETED)
            .group_by(self.model_class.account_id)
            .all()
        )
        return {account_id: Decimal(str(total)) for account_id, total in rows}

    def sum_by_kinds(self, account_id: int, kinds: Iterable[LedgerKind]) -> Decimal:
        """특정 유형들의 completed 합계 (예: 추천 보너스 총액)"""
        total = (
            self.db.query(func.coalesce(func.sum(self.model_class.amount), 0))
            .filter(
                self.model_class.account_id == account_id,
                self.model_class.kind.in_(list(kinds)),
                self.model_class.status == LedgerStatus.COMPLETED,
            )
            .scalar()
        )
        return Decimal(str(total))
