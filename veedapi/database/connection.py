from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from veedapi.config import get_settings


def build_engine(url: str, debug: bool = False, pool_size: int = 10, max_overflow: int = 20) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(
            url, echo=debug, connect_args={"check_same_thread": False}
        )
    return create_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,  # 연결 유효성 검사
        pool_recycle=3600,  # 1시간마다 연결 재생성
        echo=debug,  # 디버그 모드에서 SQL 로깅
    )


@lru_cache
def get_engine() -> Engine:
    settings = get_settings()
    return build_engine(
        settings.database_url,
        debug=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )


@lru_cache
def get_session_factory() -> sessionmaker:
    # Use expire_on_commit=False to avoid DetachedInstanceError when accessing
    # attributes after commit within the same request scope.
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=get_engine(),
        expire_on_commit=False,
    )
