"""
File: identity_bridge/db/repositories/base.py
Description: 通用异步 Repository 基类

封装通用的读取与写入操作，所有领域的 Repository 继承此类。

特性：
- 泛型支持: BaseRepository[ModelType]
- 纯异步: 基于 sqlalchemy.ext.asyncio
- 只 flush 不 commit：事务边界由 Service / 事件消费者控制
- update 自动过滤核心系统字段 (id, created_at, updated_at)

Created: 2026-10-18
"""

from collections.abc import Sequence
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from identity_bridge.db.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    通用仓储基类。

    参数:
    - ModelType: SQLAlchemy 模型类 (如 UserMapping)
    """

    # 受保护的字段，禁止通过通用 update 方法修改
    PROTECTED_FIELDS: ClassVar[set[str]] = {"id", "created_at", "updated_at"}

    def __init__(self, model: type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    # --------------------------------------------------------------------------
    # 查询操作 (Read)
    # --------------------------------------------------------------------------

    async def get(self, id: Any) -> ModelType | None:
        """根据主键 ID 查询单条记录"""
        return await self.session.get(self.model, id)

    async def exists(self, id: Any) -> bool:
        return await self.get(id) is not None

    async def list(self, *, skip: int = 0, limit: int = 100) -> list[ModelType]:
        """分页查询记录列表"""
        stmt = select(self.model).offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(self) -> int:
        stmt = select(func.count()).select_from(self.model)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    # --------------------------------------------------------------------------
    # 写入操作 (Create / Update)
    # --------------------------------------------------------------------------

    async def create(self, obj_in: BaseModel | dict[str, Any]) -> ModelType:
        """
        创建新记录。
        flush 以获取 ID，但不会 commit。
        """
        if isinstance(obj_in, dict):
            obj_in_data = obj_in
        else:
            obj_in_data = obj_in.model_dump(exclude_unset=True)
        db_obj = self.model(**obj_in_data)

        self.session.add(db_obj)
        await self.session.flush()
        return db_obj

    async def add_all(self, objs: Sequence[ModelType]) -> Sequence[ModelType]:
        """
        批量写入已构造好的 ORM 对象 (单次 flush)。
        类体内 `list` 已是方法名，注解中不能再引用内置 list。
        """
        self.session.add_all(objs)
        await self.session.flush()
        return objs

    async def update(self, db_obj: ModelType, obj_in: BaseModel | dict[str, Any]) -> ModelType:
        """
        更新现有记录，自动过滤 PROTECTED_FIELDS 中的敏感字段。
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        safe_data = {k: v for k, v in update_data.items() if k not in self.PROTECTED_FIELDS}
        if hasattr(db_obj, "update"):
            db_obj.update(**safe_data)  # type: ignore[union-attr]
        else:
            for field, value in safe_data.items():
                if hasattr(db_obj, field):
                    setattr(db_obj, field, value)

        self.session.add(db_obj)
        await self.session.flush()
        return db_obj
