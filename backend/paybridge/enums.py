"""
枚举类型定义模块

定义应用中使用的所有枚举类型。
所有枚举都继承自 str 和 Enum，这样既可以用作字符串，又具有枚举的特性。
"""
from enum import Enum


class PaymentProvider(str, Enum):
    """
    支付平台枚举

    - cakto: Cakto
    - hotmart: Hotmart
    """
    cakto = "cakto"
    hotmart = "hotmart"


class OrderStatus(str, Enum):
    """
    订单状态枚举

    - pending: 待支付
    - paid: 已支付
    - refused: 支付被拒
    - refunded: 已退款
    - cancelled: 已取消
    - chargeback: 拒付
    """
    pending = "pending"
    paid = "paid"
    refused = "refused"
    refunded = "refunded"
    cancelled = "cancelled"
    chargeback = "chargeback"


class EventStatus(str, Enum):
    """
    归一化后的 Webhook 事件状态

    只有 approved 会触发订单状态变更，其余状态仅确认收到。
    """
    approved = "approved"
    refused = "refused"
    refunded = "refunded"
    cancelled = "cancelled"
    chargeback = "chargeback"
    unrecognized = "unrecognized"


class MatchStrategy(str, Enum):
    """
    订单匹配策略

    按优先级依次尝试，第一个命中的策略会被记录到日志和响应中。
    """
    order_id_from_webhook = "order_id_from_webhook"
    cakto_transaction_id = "cakto_transaction_id"
    hotmart_transaction_id = "hotmart_transaction_id"
    email_most_recent = "email_most_recent"
    phone_most_recent = "phone_most_recent"
    none = "none"


class PaidReplayPolicy(str, Enum):
    """
    订单已支付时重复收到批准事件的处理策略

    - short_circuit: 直接返回 "Already processed"，不再触发任何副作用
    - reapply: 重新写入支付信息并重新评估副作用（保证之前未完成的歌词生成能补上）
    """
    short_circuit = "short_circuit"
    reapply = "reapply"


class JobStatus(str, Enum):
    """
    生成任务状态

    - pending: 待处理
    - processing: 处理中
    - completed: 已完成
    - failed: 失败
    """
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class EmailStatus(str, Enum):
    pending = "pending"
    sent = "sent"
    delivered = "delivered"
    failed = "failed"
    bounced = "bounced"


class CheckoutPlan(str, Enum):
    standard = "standard"
    express = "express"
