"""
File: identity_bridge/domains/bridge/validation.py
Description: 校验闸门 (Validation Gate)

1. validate_non_blank: 公共写操作入口处的必填校验，遇到第一个空值即抛出
2. validate_provider_exists: 映射写入前的批量校验 (触发器语义)，
   每条记录独立评估，返回与输入对齐的错误列表，不中断整批
3. derive_composite_key: 为唯一约束派生组合键

provider 注册表无法在自动化测试中伪造，因此 ENVIRONMENT=test 时默认跳过
provider 校验；测试可通过 ENFORCE_PROVIDER_CHECK_UNDER_TEST 显式开启。

Created: 2026-10-18
"""

from collections.abc import Sequence
from typing import Any

from identity_bridge.core.config import settings
from identity_bridge.core.logging import logger
from identity_bridge.domains.bridge.constants import PROVIDER_NOT_FOUND_ERROR, BridgeError
from identity_bridge.domains.bridge.exceptions import ValidationError
from identity_bridge.domains.bridge.repository import ExternalAuthProviderRepository

# 包级开关：测试环境下是否仍执行 provider 校验
ENFORCE_PROVIDER_CHECK_UNDER_TEST = False


def is_blank(value: Any) -> bool:
    """None、空串或仅含空白字符视为空"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def validate_non_blank(values: Sequence[Any], error_kind: BridgeError) -> None:
    """
    按位置校验必填值。

    Raises:
        ValidationError: 第一个为空的值所属的错误类别
    """
    for position, value in enumerate(values):
        if is_blank(value):
            raise ValidationError(error_kind, data={"position": position})


def derive_composite_key(
    records: Sequence[Any], field_a: str, field_b: str, target_field: str
) -> None:
    """
    为批次中的每条记录写入 target_field = field_a + "_" + field_b。
    在数据库唯一约束之前派生，使重复的 (a, b) 组合由约束拦截。
    """
    for record in records:
        value = f"{getattr(record, field_a)}_{getattr(record, field_b)}"
        setattr(record, target_field, value)


def provider_check_enabled() -> bool:
    return not settings.is_testing or ENFORCE_PROVIDER_CHECK_UNDER_TEST


async def validate_provider_exists(
    field: str,
    records: Sequence[Any],
    repo: ExternalAuthProviderRepository,
) -> list[str | None]:
    """
    校验批次中每条记录引用的 provider 是否已注册。

    1. 收集去重后的 provider 名称 (大小写不敏感)
    2. 单次查询解析
    3. 对未找到的记录附加错误，其余记录不受影响
    4. 空名称由必填校验报告，这里不再重复标记

    Returns:
        list[str | None]: 与 records 对齐；None 表示该记录通过
    """
    errors: list[str | None] = [None] * len(records)
    if not records or not provider_check_enabled():
        return errors

    names = {
        value
        for value in (getattr(r, field) for r in records)
        if not is_blank(value)
    }
    existing = await repo.find_existing_names(names)

    for index, record in enumerate(records):
        value = getattr(record, field)
        if is_blank(value):
            continue
        if value.lower() not in existing:
            errors[index] = PROVIDER_NOT_FOUND_ERROR.format(value=value)

    flagged = sum(1 for e in errors if e)
    if flagged:
        logger.bind(field=field, batch_size=len(records), flagged=flagged).warning(
            "Records reference unknown auth providers"
        )
    return errors
