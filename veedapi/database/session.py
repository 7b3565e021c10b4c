import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from veedapi.core.exceptions import StorageFailureError
from veedapi.database.connection import get_session_factory

logger = logging.getLogger(__name__)


def get_db():
    db = get_session_factory()()
    try:
        yield db
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context():
    """컨텍스트 매니저를 사용한 데이터베이스 세션 관리"""
    db = get_session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session, operation: str) -> Iterator[Session]:
    """
    하나의 비즈니스 연산을 하나의 트랜잭션으로 묶습니다.

    - 정상 종료 시 commit
    - 도메인 예외는 rollback 후 그대로 전파
    - SQLAlchemyError 는 rollback 후 StorageFailureError 로 변환 (부분 원장 기록 없음)
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure during {operation}: {str(e)}")
        raise StorageFailureError(
            message=f"Storage failure during {operation}",
            details={"operation": operation},
        ) from e
    except Exception:
        db.rollback()
        raise
