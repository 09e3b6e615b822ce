"""用户可见文本模板加载工具。

按语言(locale) 从 prompts/<locale> 目录读取模板文本（Markdown），
模板中的 {name} 占位符用 str.format 填充。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_template(name: str, locale: str = "en") -> str:
    """根据模板名和语言加载模板文本。"""

    fname = PROMPTS_DIR / locale / f"{name}.md"
    return fname.read_text(encoding="utf-8").strip()


def render_template(name: str, locale: str = "en", /, **values) -> str:
    return load_template(name, locale).format(**values)
