from typing import List, Optional

from sqlalchemy import asc
from sqlalchemy.orm import Session

from veedapi.models.catalog import Plan as PlanModel, Video as VideoModel
from veedapi.schemas.catalog import Plan as PlanSchema, Video as VideoSchema
from veedapi.repositories.base import BaseRepository


class PlanRepository(BaseRepository[PlanModel, PlanSchema]):
    """플랜 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(PlanModel, PlanSchema, db)

    def get_model_by_name(self, name: str) -> Optional[PlanModel]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.name == name)
            .first()
        )

    def list_plans(self, active_only: bool = True) -> List[PlanSchema]:
        """가격 오름차순 플랜 목록"""
        query = self.db.query(self.model_class)
        if active_only:
            query = query.filter(self.model_class.is_active.is_(True))
        rows = query.order_by(asc(self.model_class.cost), asc(self.model_class.id)).all()
        return [self._to_schema(row) for row in rows]


class VideoRepository(BaseRepository[VideoModel, VideoSchema]):
    """영상 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(VideoModel, VideoSchema, db)

    def list_videos(self, active_only: bool = True) -> List[VideoModel]:
        query = self.db.query(self.model_class)
        if active_only:
            query = query.filter(self.model_class.is_active.is_(True))
        return query.order_by(asc(self.model_class.id)).all()
