"""
Development server runner
开发服务器启动脚本 - python run.py
"""

import uvicorn
from chameleon.core.config import settings


def main():
    options = {
        "host": settings.HOST,
        "port": settings.PORT,
        "access_log": True,
        "log_level": settings.LOG_LEVEL.lower(),
    }
    # reload 模式和 workers 不能同时使用；计时器任务在进程内运行，多进程部署需要 Redis 转发通知
    if settings.DEBUG:
        options["reload"] = True
    else:
        options["workers"] = settings.WORKERS

    uvicorn.run("chameleon.main:app", **options)


if __name__ == "__main__":
    main()
