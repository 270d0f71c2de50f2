from typing import Generic, TypeVar, Type, Optional
from sqlmodel import SQLModel, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

logger = structlog.get_logger()

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseDAO(Generic[ModelType]):
    def __init__(self, model: Type[ModelType]):
        self.model = model

    def translate_integrity_error(self, error: IntegrityError, obj_in: dict) -> Optional[Exception]:
        """Map a constraint violation to a domain error; None re-raises the original."""
        return None

    async def _commit_write(self, db: AsyncSession, db_obj: ModelType, obj_in: dict, done: str, doing: str) -> ModelType:
        try:
            db.add(db_obj)
            await db.commit()
            await db.refresh(db_obj)
            logger.info(f"{done} {self.model.__name__}", id=str(db_obj.id))
            return db_obj
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Constraint violation {doing} {self.model.__name__}", error=str(e.orig))
            translated = self.translate_integrity_error(e, obj_in)
            if translated is not None:
                raise translated from e
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Error {doing} {self.model.__name__}", error=str(e))
            raise

    async def create(self, db: AsyncSession, *, obj_in: dict) -> ModelType:
        return await self._commit_write(db, self.model(**obj_in), obj_in, "Created", "creating")

    async def get_by_id(self, db: AsyncSession, id: int) -> Optional[ModelType]:
        try:
            result = await db.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()
        except Exception as e:
            logger.error(f"Error getting {self.model.__name__} by id", id=str(id), error=str(e))
            raise

    async def update(
        self, db: AsyncSession, *, db_obj: ModelType, obj_in: dict
    ) -> ModelType:
        for field, value in obj_in.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        return await self._commit_write(db, db_obj, obj_in, "Updated", "updating")

    async def delete(self, db: AsyncSession, *, id: int) -> Optional[ModelType]:
        try:
            obj = await self.get_by_id(db, id)
            if obj:
                await db.delete(obj)
                await db.commit()
                logger.info(f"Deleted {self.model.__name__}", id=str(id))
            return obj
        except Exception as e:
            await db.rollback()
            logger.error(f"Error deleting {self.model.__name__}", id=str(id), error=str(e))
            raise
