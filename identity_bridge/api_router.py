"""
File: identity_bridge/api_router.py
Description: 根 API 路由聚合层

本模块负责：
1. 聚合所有业务领域的 Router
2. 统一设置标签 (Tags) 用于 OpenAPI 文档分组

Created: 2026-10-18
"""

from fastapi import APIRouter

from identity_bridge.domains.bridge.router import router as bridge_router

# 创建根 API 路由
api_router = APIRouter()

# ------------------------------------------------------------------------------
# 注册领域路由
# ------------------------------------------------------------------------------

# 映射桥 (Facade 调用 / 映射维护 / 事件投递)
api_router.include_router(bridge_router, tags=["bridge"])
