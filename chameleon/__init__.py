"""
Chameleon party game service
变色龙派对游戏服务
"""

__version__ = "1.0.0"
