import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from veedapi.config import Settings
from veedapi.core.exceptions import InvalidAmountError, NotFoundError
from veedapi.database.session import unit_of_work
from veedapi.repositories.account_repository import AccountRepository
from veedapi.repositories.catalog_repository import VideoRepository
from veedapi.repositories.watch_repository import WatchRecordRepository
from veedapi.schemas.catalog import AvailableVideo, Video, VideoCreate, VideoUpdate
from veedapi.utils.money import to_money
from veedapi.utils.timezone_utils import DayPolicy

logger = logging.getLogger(__name__)


class VideoService:
    """영상 카탈로그 관리"""

    def __init__(
        self, db: Session, settings: Settings, day_policy: Optional[DayPolicy] = None
    ):
        self.db = db
        self.settings = settings
        self.day_policy = day_policy or DayPolicy(settings.TIMEZONE)
        self.video_repo = VideoRepository(db)
        self.watch_repo = WatchRecordRepository(db)
        self.account_repo = AccountRepository(db)

    def create_video(self, request: VideoCreate) -> Video:
        reward_amount = None
        if request.reward_amount is not None:
            reward_amount = to_money(request.reward_amount)
            if reward_amount <= 0:
                raise InvalidAmountError("Video reward must be positive")

        with unit_of_work(self.db, "create_video"):
            video = self.video_repo.create(
                title=request.title,
                video_url=request.video_url,
                duration_seconds=request.duration_seconds,
                reward_amount=reward_amount,
                is_active=request.is_active,
            )

        logger.info(f"Created video {video.id} ({video.title}, {video.duration_seconds}s)")
        return Video.model_validate(video)

    def update_video(self, video_id: int, request: VideoUpdate) -> Video:
        changes = request.model_dump(exclude_unset=True)
        if changes.get("reward_amount") is not None:
            changes["reward_amount"] = to_money(changes["reward_amount"])
            if changes["reward_amount"] <= 0:
                raise InvalidAmountError("Video reward must be positive")

        with unit_of_work(self.db, "update_video"):
            video = self.video_repo.get_model(video_id)
            if video is None:
                raise NotFoundError(f"Video not found: {video_id}")
            for key, value in changes.items():
                setattr(video, key, value)
            self.db.flush()

        logger.info(f"Updated video {video_id}: {list(changes.keys())}")
        return Video.model_validate(video)

    def delete_video(self, video_id: int) -> bool:
        """영상 삭제 - 시청 기록이 있는 영상은 기록 보존을 위해 비활성화만 합니다

        Returns:
            bool: 실제로 삭제되었으면 True, 비활성화되었으면 False
        """
        with unit_of_work(self.db, "delete_video"):
            video = self.video_repo.get_model(video_id)
            if video is None:
                raise NotFoundError(f"Video not found: {video_id}")

            if self.watch_repo.exists({"video_id": video_id}):
                video.is_active = False
                deleted = False
            else:
                self.video_repo.delete_model(video)
                deleted = True

        logger.info(f"Video {video_id} {'deleted' if deleted else 'deactivated'}")
        return deleted

    def get_video(self, video_id: int) -> Video:
        video = self.video_repo.get_by_id(video_id)
        if video is None:
            raise NotFoundError(f"Video not found: {video_id}")
        return video

    def list_videos(self, active_only: bool = False) -> List[Video]:
        return [Video.model_validate(v) for v in self.video_repo.list_videos(active_only)]

    def list_available(self, account_id: int) -> List[AvailableVideo]:
        """활성 영상 목록 + 오늘 시청 여부"""
        if self.account_repo.get_model(account_id) is None:
            raise NotFoundError(f"Account not found: {account_id}")

        watched = set(
            self.watch_repo.watched_video_ids(account_id, self.day_policy.current_day())
        )
        return [
            AvailableVideo.model_validate(video).model_copy(
                update={"watched_today": video.id in watched}
            )
            for video in self.video_repo.list_videos(active_only=True)
        ]
