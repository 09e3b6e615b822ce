"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("AUTOHELP_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except Exception as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


DEFAULT_JAVADOC_INDEX: Dict[str, str] = {
    "java": "https://docs.oracle.com/javase/8/docs/api/",
    "org.bukkit": "https://hub.spigotmc.org/javadocs/spigot/",
    "org.spigotmc": "https://hub.spigotmc.org/javadocs/spigot/",
    "net.md_5": "https://javadoc.io/doc/net.md-5/bungeecord-api/latest/",
}

# 这些包里的帧不算用户代码，出错位置会跳过它们
DEFAULT_KNOWN_PACKAGES = (
    r"^(?:java|javax|jdk|sun|com\.sun|kotlin|kotlinx|org\.bukkit|org\.spigotmc|"
    r"net\.md_5|io\.papermc|com\.destroystokyo|net\.minecraft|com\.mojang|"
    r"org\.apache|com\.google|io\.netty|org\.slf4j)(?:\..*)?$"
)


class AutoHelpSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 通用 ----
    http_timeout: float = Field(default=10.0, ge=1.0, description="HTTP 超时时间（秒），所有抓取都受其限制")
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- 会话 ----
    conversation_ttl: float = Field(default=30.0, gt=0, description="会话空闲多久后被清理（秒）")
    sweep_interval: float = Field(default=30.0, gt=0, description="清理任务的执行间隔（秒）")

    # ---- OCR 配额 ----
    quota_file: str = Field(default="ocr_usages.json", description="OCR 配额状态文件")
    quota_max_usages: int = Field(default=1000, ge=0, description="每个窗口内允许的 OCR 调用次数")
    quota_window_days: int = Field(default=30, ge=1, description="配额窗口长度（天）")

    # ---- 知识库 ----
    knowledge_file: str = Field(default="knowledge.yaml", description="异常解释文本（key -> text）")
    known_packages: str = Field(default=DEFAULT_KNOWN_PACKAGES, description="属于库而非用户代码的包（正则）")

    # ---- 外部服务 ----
    github_api_base: str = Field(default="https://api.github.com", description="GitHub API 基础URL")
    github_token: Optional[str] = Field(default=None, description="GitHub token（可选，提高 gist 接口限额）")
    cse_key: Optional[str] = Field(default=None, description="Google Custom Search API 密钥")
    cse_id: Optional[str] = Field(default=None, description="Google Custom Search 引擎 ID")
    cse_base_url: str = Field(
        default="https://www.googleapis.com/customsearch/v1",
        description="Custom Search API 地址",
    )
    vision_api_key: Optional[str] = Field(default=None, description="Google Vision API 密钥（启用图片 OCR）")
    vision_base_url: str = Field(
        default="https://vision.googleapis.com/v1",
        description="Vision API 基础URL",
    )
    javadoc_index: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_JAVADOC_INDEX),
        description="包前缀 -> javadoc 根地址",
    )

    # ---- 触发条件 ----
    auto_help_channels: List[str] = Field(
        default_factory=list,
        description="监听的频道或分类 ID，为空表示全部频道",
    )
    auto_help_blacklist: List[str] = Field(default_factory=list, description="忽略的频道 ID")
    auto_help_bypass: str = Field(default="", description="消息中包含该词时不触发 AutoHelp")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("cse_key", "vision_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = AutoHelpSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = AutoHelpSettings
