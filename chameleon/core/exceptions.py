"""
Game action errors
游戏操作异常分类
"""


class GameActionError(ValueError):
    """游戏操作被拒绝的基类，消息面向玩家展示"""

    code = "game_error"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PreconditionError(GameActionError):
    """前置条件不满足：不是你的回合、已经投过票、人数不足等"""

    code = "precondition_failed"


class InvalidTargetError(GameActionError):
    """目标无效：投票给受保护玩家、目标玩家不存在"""

    code = "invalid_target"


class FatalRoundError(GameActionError):
    """本轮无法继续（例如类别没有词汇），需要房主重新选择"""

    code = "fatal_round_error"


class CollaboratorError(GameActionError):
    """存储或通知失败，调用方可以重试"""

    code = "collaborator_failure"
    retryable = True


class RoomNotFoundError(GameActionError):
    """房间不存在"""

    code = "room_not_found"
