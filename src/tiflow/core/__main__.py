"""CLI 入口模块 -- python -m tiflow.core <command>

支持的命令：
  init-db   创建数据库与表结构（已存在时不改动数据）
  reset-db  清空所有任务、产物与事件
"""

import asyncio
import sys

from .config import get_db_path

_COMMANDS = {
    "init-db": "创建数据库与表结构",
    "reset-db": "清空所有任务、产物与事件",
}


def _print_usage() -> None:
    print("用法: python -m tiflow.core <command>")
    print("命令:")
    for name, help_text in _COMMANDS.items():
        print(f"  {name:<10}{help_text}")


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        _print_usage()
        sys.exit(1)

    command = sys.argv[1]

    if command == "init-db":
        asyncio.run(init_database(reset=False))
    elif command == "reset-db":
        asyncio.run(init_database(reset=True))
    else:
        print(f"未知命令: {command}")
        print(f"可用命令: {', '.join(_COMMANDS)}")
        sys.exit(1)


async def init_database(reset: bool) -> None:
    """打开（必要时创建）数据库，可选清空"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path, reset=reset)
    try:
        tasks = await store_group.task_store.list_tasks()
        if reset:
            print("数据库已清空")
        else:
            print(f"数据库就绪，现有任务 {len(tasks)} 个")
    finally:
        await store_group.close()


if __name__ == "__main__":
    main()
