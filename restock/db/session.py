import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from restock.core.config import settings
from restock.helpers.getters import isDebugMode

logger = logging.getLogger(__name__)

if isDebugMode():
    logger.info("Using database URL in debug mode")

engine = create_async_engine(settings.DATABASE_URL, future=True, echo=False)
SessionAsync = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
