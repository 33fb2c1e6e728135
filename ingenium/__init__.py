"""
ingenium - 个人 AI 助手运行时

包含三块核心：
    - 进程内消息总线（入站/出站两条异步队列 + 按渠道订阅分发）
    - 带迭代上限的工具调用循环（AgentLoop）
    - 后台子代理协调器（SubagentManager），完成后通过总线回报结果

其余部分（LLM 适配、工具实现、会话存储、配置、CLI）都是围绕内核的外部协作者。
"""

__version__ = "0.1.0"

__logo__ = "⚙️"
