import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal_chat.config import config
from portal_chat.models.profile import AdminRole, Profile

logger = logging.getLogger(__name__)


async def is_admin(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(select(AdminRole.id).where(AdminRole.user_id == user_id))
    return result.scalar_one_or_none() is not None


async def ensure_admin_role(db: AsyncSession):
    """Видає роль адміністратора користувачу з ADMIN_USER_ID під час старту."""

    admin_user_id = config.ADMIN_USER_ID
    if not admin_user_id:
        logger.warning("⚠️ ADMIN_USER_ID не встановлено! Пропускаємо призначення адміністратора.")
        return

    profile = await db.get(Profile, admin_user_id)
    if profile is None:
        logger.warning(f"⚠️ Профіль {admin_user_id} не знайдено, роль адміністратора не призначена.")
        return

    if await is_admin(db, admin_user_id):
        logger.info(f"✅ {profile.display_name} вже адміністратор. Пропускаємо.")
        return

    db.add(AdminRole(user_id=admin_user_id))
    await db.commit()
    logger.info(f"🆕 {profile.display_name} отримав роль адміністратора")
