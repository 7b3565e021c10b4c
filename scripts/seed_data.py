"""
기본 플랜/영상 시드 스크립트
"""

import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from decimal import Decimal

from veedapi.config import settings
from veedapi.core.exceptions import ConflictError
from veedapi.database.session import get_db_context
from veedapi.logging_config import setup_logging
from veedapi.schemas.catalog import PlanCreate, VideoCreate
from veedapi.services.plan_service import PlanService
from veedapi.services.video_service import VideoService


DEFAULT_PLANS = [
    # (name, cost, daily_reward, videos_per_day, duration_days)
    ("Bronze", Decimal("100.00"), Decimal("30.00"), 3, 30),
    ("Prata", Decimal("500.00"), Decimal("160.00"), 4, 30),
    ("Ouro", Decimal("1000.00"), Decimal("350.00"), 5, 30),
]

DEFAULT_VIDEOS = [
    ("Bem-vindo ao VEED", "https://cdn.veed.co.mz/videos/welcome.mp4", 60),
    ("Como funciona", "https://cdn.veed.co.mz/videos/how-it-works.mp4", 90),
    ("Dicas de poupança", "https://cdn.veed.co.mz/videos/savings.mp4", 120),
]


def seed_catalog():
    """기본 플랜/영상 시드"""
    with get_db_context() as db:
        plan_service = PlanService(db, settings)
        for name, cost, daily_reward, videos_per_day, duration_days in DEFAULT_PLANS:
            try:
                plan = plan_service.create_plan(
                    PlanCreate(
                        name=name,
                        cost=cost,
                        daily_reward=daily_reward,
                        videos_per_day=videos_per_day,
                        duration_days=duration_days,
                    )
                )
                print(f"✅ 플랜 생성: {plan.name} ({plan.cost} {settings.CURRENCY})")
            except ConflictError:
                print(f"⏭️  이미 존재하는 플랜: {name}")

        video_service = VideoService(db, settings)
        if video_service.list_videos():
            print("⏭️  영상이 이미 존재하여 건너뜀")
            return

        for title, url, duration in DEFAULT_VIDEOS:
            video = video_service.create_video(
                VideoCreate(title=title, video_url=url, duration_seconds=duration)
            )
            print(f"✅ 영상 생성: {video.title} ({video.duration_seconds}s)")


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL)
    seed_catalog()
