"""
Ezvizinho - Error Categorizer
==============================
Maps an error's free text to one label of a fixed set.

The table is an **ordered** list of ``(label, patterns)`` pairs and the
order is part of the contract: text that matches several labels (e.g.
"network timeout and billing overdue") always resolves to the label
listed first.  Each label carries Chinese and English terms, matched
case-insensitively as substrings.

Usage:
    from ezvizinho.src.core.categorizer import categorize
    categorize("设备离线", "请检查网络")   # → "network"
"""

from __future__ import annotations

import re

DEFAULT_CATEGORY = "general"


def _patterns(*terms: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(term, re.IGNORECASE) for term in terms)


# ── Ordered category table (first match wins) ─────────────────────────
CATEGORY_TABLE: list[tuple[str, tuple[re.Pattern[str], ...]]] = [
    ("network", _patterns("网络", "network", "超时", "timeout", "连接", "connection", "断开", "disconnect", "dns", "ip", "socket")),
    ("billing", _patterns("余额", "balance", "付费", "payment", "欠费", "overdue", "订阅", "subscription", "充值", "recharge", "套餐", "plan")),
    ("device", _patterns("设备", "device", "离线", "offline", "重启", "restart", "固件", "firmware", "硬件", "hardware", "摄像", "camera")),
    ("authentication", _patterns("登录", "login", "密码", "password", "验证", "verify", "认证", "auth", "token", "权限", "permission")),
    ("streaming", _patterns("流媒体", "stream", "播放", "play", "视频", "video", "直播", "live", "回放", "playback")),
    ("storage", _patterns("存储", "storage", "云存储", "cloud", "录像", "recording", "sd卡", "sdcard", "空间", "space")),
    ("configuration", _patterns("配置", "config", "设置", "setting", "参数", "parameter")),
]

CATEGORIES: tuple[str, ...] = tuple(label for label, _ in CATEGORY_TABLE) + (DEFAULT_CATEGORY,)


def categorize(description: str, solution: str) -> str:
    """
    Return the category of an error from its description and solution.

    Never fails: text matching no pattern is ``"general"``.
    """
    text = f"{description} {solution}".lower()

    for label, patterns in CATEGORY_TABLE:
        if any(pattern.search(text) for pattern in patterns):
            return label

    return DEFAULT_CATEGORY
