"""
nanogate 命令行入口

使用方法:
    python -m nanogate gateway      # 启动网关服务
    python -m nanogate agent -m hi  # 单次对话
    python -m nanogate --help       # 查看帮助信息
"""

# 这个模块包含了所有命令行接口的命令定义
from nanogate.cli.commands import app

if __name__ == "__main__":
    app()
