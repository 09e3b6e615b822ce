"""Paste 站点注册表。

把用户贴出来的分享链接映射为可以直接下载的 raw 地址。
新增站点只需要在 PASTE_REGISTRY 里加一项。
"""

import re
from dataclasses import dataclass
from typing import List, Mapping, Pattern


@dataclass(frozen=True)
class PasteServiceConfig:
    """单个 paste 站点的配置。

    - pattern: 匹配分享链接，必须带名为 id 的分组，可选 host 分组。
    - raw_template: raw 地址模板，可使用 {host} 与 {id}。
    """

    name: str
    pattern: Pattern[str]
    raw_template: str

    def raw_urls(self, text: str) -> List[str]:
        urls = []
        for m in self.pattern.finditer(text):
            groups = m.groupdict()
            urls.append(self.raw_template.format(host=groups.get("host") or "", id=groups["id"]))
        return urls


_ID = r"(?P<id>[A-Za-z0-9_-]+)"

HASTEBIN_CONFIG = PasteServiceConfig(
    name="hastebin",
    pattern=re.compile(
        rf"(?:https?://)?(?:www\.)?(?P<host>hastebin\.com|hasteb\.in|paste\.helpch\.at)/(?:raw/)?{_ID}"
    ),
    raw_template="https://{host}/raw/{id}",
)

PASTEBIN_CONFIG = PasteServiceConfig(
    name="pastebin",
    pattern=re.compile(rf"(?:https?://)?(?:www\.)?pastebin\.com/(?:raw/)?{_ID}"),
    raw_template="https://pastebin.com/raw/{id}",
)

GHOSTBIN_CONFIG = PasteServiceConfig(
    name="ghostbin",
    pattern=re.compile(rf"(?:https?://)?(?:www\.)?ghostbin\.co/(?:paste/)?{_ID}(?:/raw)?"),
    raw_template="https://ghostbin.co/paste/{id}/raw",
)


PASTE_REGISTRY: Mapping[str, PasteServiceConfig] = {
    "hastebin": HASTEBIN_CONFIG,
    "pastebin": PASTEBIN_CONFIG,
    "ghostbin": GHOSTBIN_CONFIG,
}

# gist.github.com/<user>/<id> 需要先查 API；githubusercontent 是 raw 地址，直接下载
GIST_PAGE_PATTERN = re.compile(r"(?:https?://)?gist\.github\.com/(?P<user>[\w-]+)/(?P<id>[0-9a-fA-F]+)")
GIST_RAW_PATTERN = re.compile(r"https?://gist\.githubusercontent\.com/[^\s)<>\"']+")


def get_paste_config(name: str) -> PasteServiceConfig:
    """根据名称获取 PasteServiceConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PASTE_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown paste service: {name!r}")


def find_paste_raw_urls(text: str) -> List[str]:
    """按出现顺序返回文本中所有 paste 链接对应的 raw 地址（去重）。"""

    found = []
    for cfg in PASTE_REGISTRY.values():
        for url in cfg.raw_urls(text):
            if url not in found:
                found.append(url)
    return found
