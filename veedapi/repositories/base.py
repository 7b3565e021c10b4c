from abc import ABC
from typing import TypeVar, Generic, Optional, List, Dict, Any, Type
from sqlalchemy.orm import Session
from pydantic import BaseModel

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """
    모든 리포지토리의 베이스 클래스

    - 조회 메서드는 Pydantic 스키마를 반환
    - *_model / *_for_update 메서드는 서비스가 같은 트랜잭션 안에서 수정할 SQLAlchemy 모델을 반환
    - 쓰기 메서드는 flush 까지만 수행하고 commit 은 서비스의 unit_of_work 가 담당
    """

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        """SQLAlchemy 모델을 Pydantic 스키마로 변환"""
        if model_instance is None:
            return None

        # Pydantic v2의 model_validate를 사용하여 from_attributes 활용
        return self.schema_class.model_validate(model_instance)

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        if filters:
            for key, value in filters.items():
                if hasattr(self.model_class, key):
                    query = query.filter(getattr(self.model_class, key) == value)
        return query

    def get_model(self, id: Any) -> Optional[T]:
        """ID로 모델 조회 (잠금 없음)"""
        return self.db.get(self.model_class, id)

    def get_model_for_update(self, id: Any) -> Optional[T]:
        """ID로 모델 조회 + 행 잠금 (SELECT ... FOR UPDATE)

        sqlite 에서는 FOR UPDATE 가 무시되며 단일 writer 로 직렬화됩니다.
        """
        return (
            self.db.query(self.model_class)
            .filter(getattr(self.model_class, "id") == id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get_by_id(self, id: Any) -> Optional[SchemaType]:
        """ID로 조회 - Pydantic 스키마 반환"""
        return self._to_schema(self.get_model(id))

    def get_by_field(self, field_name: str, value: Any) -> Optional[SchemaType]:
        """특정 필드로 조회 - Pydantic 스키마 반환"""
        model_instance = (
            self.db.query(self.model_class)
            .filter(getattr(self.model_class, field_name) == value)
            .first()
        )
        return self._to_schema(model_instance)

    def find_all(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[SchemaType]:
        """조건에 맞는 모든 레코드 조회 - Pydantic 스키마 리스트 반환"""
        query = self._apply_filters(self.db.query(self.model_class), filters)

        if order_by and hasattr(self.model_class, order_by):
            query = query.order_by(getattr(self.model_class, order_by))

        if offset:
            query = query.offset(offset)

        if limit:
            query = query.limit(limit)

        return [self._to_schema(instance) for instance in query.all()]

    def add(self, instance: T) -> T:
        """모델 추가 후 flush (ID 할당) - commit 하지 않음"""
        self.db.add(instance)
        self.db.flush()
        return instance

    def create(self, **kwargs) -> T:
        """새 레코드 생성 - flush 된 모델 반환"""
        return self.add(self.model_class(**kwargs))

    def delete_model(self, instance: T) -> None:
        self.db.delete(instance)
        self.db.flush()

    def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """레코드 수 조회"""
        return self._apply_filters(self.db.query(self.model_class), filters).count()

    def exists(self, filters: Dict[str, Any]) -> bool:
        """레코드 존재 여부 확인"""
        return self._apply_filters(self.db.query(self.model_class), filters).first() is not None
