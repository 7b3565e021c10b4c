from sqlalchemy import BigInteger, Column, DateTime, Integer, Numeric, func
from sqlalchemy.orm import declarative_base, declared_attr

Base = declarative_base()

# 금액 컬럼 공통 타입 (MT, 센타보 단위까지)
Money = Numeric(14, 2, asdecimal=True)

# sqlite 의 autoincrement 는 INTEGER PRIMARY KEY 에서만 동작
PrimaryKey = BigInteger().with_variant(Integer(), "sqlite")


class TimestampMixin:
    """타임스탬프 필드를 위한 믹스인"""

    @declared_attr
    def created_at(cls):
        return Column(DateTime(timezone=True), server_default=func.now())

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
        )


class BaseModel(Base, TimestampMixin):
    """모든 모델의 베이스 클래스"""

    __abstract__ = True

    def dict(self):
        """모델을 딕셔너리로 변환"""
        return {
            column.name: getattr(self, column.name) for column in self.__table__.columns
        }
