from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from veedapi.models.account import Account as AccountModel
from veedapi.schemas.account import Account as AccountSchema, ReferredAccount
from veedapi.repositories.base import BaseRepository


class AccountRepository(BaseRepository[AccountModel, AccountSchema]):
    """계정 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(AccountModel, AccountSchema, db)

    def get_for_update(self, account_id: int) -> Optional[AccountModel]:
        """계정 단위 직렬화를 위한 행 잠금 조회"""
        return self.get_model_for_update(account_id)

    def get_by_email(self, email: str) -> Optional[AccountSchema]:
        """이메일로 계정 조회"""
        return self.get_by_field("email", email.lower())

    def username_exists(self, username: str) -> bool:
        return self.exists({"username": username})

    def email_exists(self, email: str) -> bool:
        return self.exists({"email": email.lower()})

    def referral_code_exists(self, code: str) -> bool:
        return self.exists({"referral_code": code})

    def get_model_by_referral_code(self, code: str) -> Optional[AccountModel]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.referral_code == code)
            .first()
        )

    def list_referred(self, referrer_id: int) -> List[ReferredAccount]:
        """해당 계정이 추천한 계정 목록"""
        rows = (
            self.db.query(self.model_class)
            .filter(self.model_class.referred_by_id == referrer_id)
            .order_by(self.model_class.id)
            .all()
        )
        return [ReferredAccount.model_validate(row) for row in rows]

    def list_accounts(self, limit: int = 50, offset: int = 0) -> List[AccountSchema]:
        rows = (
            self.db.query(self.model_class)
            .order_by(self.model_class.id)
            .limit(limit)
            .offset(offset)
            .all()
        )
        return [self._to_schema(row) for row in rows]

    def count_subscribers(self, plan_id: int) -> int:
        """해당 플랜을 현재 보유한 계정 수"""
        return (
            self.db.query(func.count(self.model_class.id))
            .filter(self.model_class.current_plan_id == plan_id)
            .scalar()
            or 0
        )

    def all_balances(self) -> List[tuple]:
        """(account_id, balance) 목록 - 전체 정합성 검증용"""
        return self.db.query(self.model_class.id, self.model_class.balance).all()
