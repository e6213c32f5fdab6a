"""
nanogate - 个人 AI 助手网关

从多个聊天频道接收消息，交给可调用工具的 Agent 处理，再把回复送回原频道。
"""

__version__ = "0.1.0"
__logo__ = "🛰️"
