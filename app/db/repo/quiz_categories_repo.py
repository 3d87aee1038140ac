from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.quiz_categories import QuizCategory


class QuizCategoriesRepo:
    @staticmethod
    async def get_by_code(session: AsyncSession, code: str) -> QuizCategory | None:
        return await session.get(QuizCategory, code)

    @staticmethod
    async def list_active_codes(session: AsyncSession) -> list[str]:
        stmt = (
            select(QuizCategory.code)
            .where(QuizCategory.is_active.is_(True))
            .order_by(QuizCategory.sort_order.asc(), QuizCategory.code.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
