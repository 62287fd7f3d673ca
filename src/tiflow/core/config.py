"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、启动时重置开关、日志格式等可配置项。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TIFLOW_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TIFLOW_DB_PATH",
        str(_get_base_dir() / "sqlite" / "tiflow.db"),
    )


def get_reset_on_startup() -> bool:
    """启动时是否清空任务库（演示环境使用，默认关闭）"""
    return os.environ.get("TIFLOW_RESET_DB_ON_STARTUP", "false").lower() in (
        "1",
        "true",
        "yes",
    )


def get_log_format() -> str:
    """日志渲染模式：json（生产）或 dev（默认）"""
    return os.environ.get("TIFLOW_LOG_FORMAT", "dev").lower()


def get_log_level() -> str:
    """日志级别（默认 INFO）"""
    return os.environ.get("TIFLOW_LOG_LEVEL", "INFO").upper()


# 组织引用前缀（FHIR Reference 格式）
ORGANIZATION_PREFIX: str = "Organization/"

# SDC initialExpression 扩展 URL
SDC_INITIAL_EXPRESSION_URL: str = (
    "http://hl7.org/fhir/uv/sdc/StructureDefinition/sdc-questionnaire-initialExpression"
)

# SDC QuestionnaireResponse / Parameters profile
SDC_RESPONSE_PROFILE: str = (
    "http://hl7.org/fhir/uv/sdc/StructureDefinition/sdc-questionnaireresponse"
)
SDC_PARAMETERS_PROFILE: str = "http://hl7.org/fhir/uv/sdc/StructureDefinition/parameters"

# 编译后表达式缓存上限
EXPRESSION_CACHE_SIZE: int = int(os.environ.get("TIFLOW_EXPRESSION_CACHE_SIZE", "256"))
