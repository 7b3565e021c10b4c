from typing import List

from sqlalchemy import asc
from sqlalchemy.orm import Session

from veedapi.models.payment import (
    DepositRequest as DepositModel,
    RequestStatus,
    WithdrawalRequest as WithdrawalModel,
)
from veedapi.schemas.payment import (
    DepositRequest as DepositSchema,
    WithdrawalRequest as WithdrawalSchema,
)
from veedapi.repositories.base import BaseRepository


class DepositRepository(BaseRepository[DepositModel, DepositSchema]):
    """입금 요청 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(DepositModel, DepositSchema, db)

    def list_pending(self) -> List[DepositSchema]:
        """승인 대기 입금 요청 (오래된 순)"""
        rows = (
            self.db.query(self.model_class)
            .filter(self.model_class.status == RequestStatus.PENDING)
            .order_by(asc(self.model_class.id))
            .all()
        )
        return [self._to_schema(row) for row in rows]


class WithdrawalRepository(BaseRepository[WithdrawalModel, WithdrawalSchema]):
    """출금 요청 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(WithdrawalModel, WithdrawalSchema, db)

    def list_pending(self) -> List[WithdrawalSchema]:
        rows = (
            self.db.query(self.model_class)
            .filter(self.model_class.status == RequestStatus.PENDING)
            .order_by(asc(self.model_class.id))
            .all()
        )
        return [self._to_schema(row) for row in rows]
