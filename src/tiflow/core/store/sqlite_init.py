"""SQLite 数据库初始化

PRAGMA 配置 + 四张表 DDL（tasks / artifacts / events / id_counters）+ 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id             TEXT PRIMARY KEY,
    kind                TEXT NOT NULL DEFAULT 'flow-request',
    requester_id        TEXT NOT NULL,
    receiver_id         TEXT NOT NULL,
    owner_id            TEXT NOT NULL,
    state               TEXT NOT NULL DEFAULT 'requested',
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    current_artifact_id TEXT NOT NULL,
    current_artifact_kind TEXT NOT NULL DEFAULT 'Questionnaire',
    closing_document    TEXT,
    description         TEXT NOT NULL DEFAULT '',
    version             INTEGER NOT NULL DEFAULT 1
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_requester ON tasks(requester_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_receiver ON tasks(receiver_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC);",
]

# artifacts 表 DDL（产物不可变，只插入）
_ARTIFACTS_DDL = """
CREATE TABLE IF NOT EXISTS artifacts (
    artifact_id  TEXT PRIMARY KEY,
    kind         TEXT NOT NULL,
    created_at   TEXT NOT NULL,
    task_id      TEXT,
    content      TEXT NOT NULL DEFAULT '{}'
);
"""

_ARTIFACTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_artifacts_task_id ON artifacts(task_id);",
]

# events 表 DDL（append-only 审计日志）
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS events (
    event_id    TEXT PRIMARY KEY,
    task_id     TEXT NOT NULL,
    task_seq    INTEGER NOT NULL,
    ts          TEXT NOT NULL,
    type        TEXT NOT NULL,
    actor_id    TEXT NOT NULL,
    payload     TEXT NOT NULL DEFAULT '{}',

    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_EVENTS_INDEXES = [
    # 任务内事件序号唯一约束（确保 task_seq 严格单调递增）
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_events_task_seq ON events(task_id, task_seq);",
]

# ID 计数器（严格递增，永不复用）
_ID_COUNTERS_DDL = """
CREATE TABLE IF NOT EXISTS id_counters (
    name   TEXT PRIMARY KEY,
    value  INTEGER NOT NULL DEFAULT 0
);
"""

ID_COUNTER_NAMES = ("task", "artifact")


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引 + 计数器行

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_TASKS_DDL)
    await conn.execute(_ARTIFACTS_DDL)
    await conn.execute(_EVENTS_DDL)
    await conn.execute(_ID_COUNTERS_DDL)

    # 创建索引
    for idx_sql in _TASKS_INDEXES + _ARTIFACTS_INDEXES + _EVENTS_INDEXES:
        await conn.execute(idx_sql)

    for name in ID_COUNTER_NAMES:
        await conn.execute(
            "INSERT OR IGNORE INTO id_counters (name, value) VALUES (?, 0)",
            (name,),
        )

    await conn.commit()


async def reset_db(conn: aiosqlite.Connection) -> None:
    """清空所有任务、产物、事件，并把 ID 计数器归零

    只应在显式的初始化流程中调用（CLI reset-db 或启动配置）。
    """
    await conn.execute("DELETE FROM events")
    await conn.execute("DELETE FROM tasks")
    await conn.execute("DELETE FROM artifacts")
    await conn.execute("UPDATE id_counters SET value = 0")
    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
