"""
API 路由聚合模块

将所有业务路由模块聚合到一个统一的 router 中。
这个 router 会被注册到主应用（paybridge/main.py）上。

路由模块说明：
- webhooks: 支付平台回调（Cakto、Hotmart）
- checkout: 结账（创建问卷和待支付订单）
- generation: 生成服务代理（歌词、音频、Suno 回调）
- utils: 工具相关（健康检查等）
"""
from fastapi import APIRouter

from paybridge.api.routes import (
    checkout,  # 结账路由
    generation,  # 生成服务代理路由
    utils,  # 工具路由
    webhooks,  # Webhook 路由
)

# 创建主 API 路由器
api_router = APIRouter()

# 注册所有业务路由模块
# 每个模块的路径前缀在各自的 router 中定义
api_router.include_router(webhooks.router)  # /cakto/webhook, /hotmart/webhook
api_router.include_router(checkout.router)  # /checkout/*
api_router.include_router(generation.router)  # /lyrics/*, /audio/*, /suno/*
api_router.include_router(utils.router)  # /utils/*
