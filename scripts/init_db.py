import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from veedapi.database.connection import get_engine
from veedapi.config import settings
from veedapi.logging_config import setup_logging
from veedapi.models.base import Base

# 테이블 등록을 위해 모든 모델 import
from veedapi.models import account, catalog, ledger, payment, watch  # noqa: F401


def init_db():
    """데이터베이스 초기화"""
    engine = get_engine()
    try:
        Base.metadata.create_all(bind=engine)
        print(f"Database initialized successfully: {sorted(Base.metadata.tables)}")

    except Exception as e:
        print(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL)
    init_db()
