"""
Prompt templates and the rule-based local cleanup.

A template containing ``{text}`` is sent as a single user prompt with the
transcript substituted. A template without the placeholder is treated as a
system instruction and the raw transcript becomes the user prompt.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

TEXT_PLACEHOLDER = "{text}"

OPTIMIZATION_SYSTEM_PROMPT = """你是中文语音转写文本优化助手。任务：
1. 删除语气词和口头禅（如“嗯”“啊”“就是”“然后”等），但不改变原意。
2. 去除明显重复片段（词语、短句重复）并保持语义完整。
3. 只允许做“删除”类编辑（删除口头禅、删除重复、删除多余空格），禁止改写、替换同义词、重组句式。
4. 必须保留原文中的词语、术语和符号写法（如 C加加/C++/API），不得替换。
5. 禁止改写任务意图，禁止补充、臆测、扩写新内容。
6. 仅输出最终文本，不要解释，不要加引号。
"""


def build_optimization_user_prompt(text: str) -> str:
    return f"请对以下文本做最小必要清洗，仅删除口头禅和明显重复，不改写其他内容。\n原文：{text}"


class Enhancement(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    prompt: str

    def to_dict(self) -> dict:
        return self.model_dump()

    @classmethod
    def from_dict(cls, data: dict) -> "Enhancement":
        return cls.model_validate(data)


@dataclass(frozen=True)
class PromptRequest:
    system_prompt: Optional[str]
    user_prompt: str

    def to_messages(self, supports_system_messages: bool = True) -> List[dict]:
        if not self.system_prompt:
            return [{"role": "user", "content": self.user_prompt}]
        if supports_system_messages:
            return [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": self.user_prompt},
            ]
        merged = f"{self.system_prompt}\n\n{self.user_prompt}"
        return [{"role": "user", "content": merged}]


def build_prompt(text: str, template: Optional[str] = None) -> PromptRequest:
    if template is None or not template.strip():
        return PromptRequest(
            system_prompt=OPTIMIZATION_SYSTEM_PROMPT,
            user_prompt=build_optimization_user_prompt(text),
        )
    if TEXT_PLACEHOLDER in template:
        return PromptRequest(
            system_prompt=None, user_prompt=template.replace(TEXT_PLACEHOLDER, text)
        )
    return PromptRequest(system_prompt=template, user_prompt=text)


def load_default_enhancements() -> List[Enhancement]:
    json_path = Path(__file__).parent / "enhancement_prompts.json"

    with open(json_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return [Enhancement.model_validate(item) for item in data]


_default_enhancements: Optional[List[Enhancement]] = None


def get_default_enhancements() -> List[Enhancement]:
    global _default_enhancements
    if _default_enhancements is None:
        _default_enhancements = load_default_enhancements()
    return _default_enhancements


# =============================================================================
# Local rule-based cleanup
# =============================================================================

LIGHT_FILLERS = [
    "嗯嗯",
    "嗯啊",
    "啊嗯",
    "啊啊",
    "嗯呢",
    "嗯",
    "啊",
    "呀",
    "哦",
    "额",
    "呃",
    "唔",
    "uh",
    "um",
    "ah",
]
AGGRESSIVE_FILLERS = ["那个", "然后", "就是", "其实", "这个"]

_SEPARATORS = r"\s,，。！？!?：:；;、()（）\[\]【】\"“”'‘’"
_REPEATED_LIGHT_FILLER = re.compile(r"(?:呃|额|嗯|啊|哦|唔){2,}")
_REPEATED_CHAR = re.compile(r"(.)\1{2,}")
_WHITESPACE = re.compile(r"\s+")
_SPACED_PUNCTUATION = re.compile(r"\s*([，。！？；：、,.!?;:])\s*")
_REPEATED_COMMAS = re.compile(r"([，、,.]){2,}")
_REPEATED_STOPS = re.compile(r"([。！？!?]){2,}")
_EDGE_PUNCTUATION = ("...", "。", "，", "、", "；", "：", "？", "！", ",", ";", ":")


def _filler_pattern(fillers: List[str]) -> re.Pattern:
    escaped = "|".join(re.escape(f) for f in fillers)
    return re.compile(
        rf"(^|[{_SEPARATORS}])({escaped})(?=$|[{_SEPARATORS}])", re.IGNORECASE
    )


_LIGHT_PATTERN = _filler_pattern(LIGHT_FILLERS)
_AGGRESSIVE_PATTERN = _filler_pattern(LIGHT_FILLERS + AGGRESSIVE_FILLERS)


def remove_standalone_fillers(text: str, aggressive: bool = True) -> str:
    pattern = _AGGRESSIVE_PATTERN if aggressive else _LIGHT_PATTERN
    result = pattern.sub(r"\1", text)
    return _REPEATED_LIGHT_FILLER.sub("", result)


def normalize_punctuation(text: str) -> str:
    result = _WHITESPACE.sub(" ", text)
    result = _SPACED_PUNCTUATION.sub(r"\1", result)
    result = _REPEATED_COMMAS.sub(r"\1", result)
    return _REPEATED_STOPS.sub(r"\1", result)


def strip_edge_punctuation(text: str) -> str:
    result = text.strip()
    changed = True
    while changed and result:
        changed = False
        for p in _EDGE_PUNCTUATION:
            if result.endswith(p):
                result = result[: -len(p)].rstrip()
                changed = True
            if result.startswith(p):
                result = result[len(p) :].lstrip()
                changed = True
    return result


def clean_text(text: str, aggressive: bool = True) -> str:
    """
    Remove discourse fillers and obvious repeats without rewriting.

    ``aggressive=False`` only removes high-confidence interjections
    (嗯/呃/uh...); ``aggressive=True`` also drops 那个/然后/就是 style fillers.
    Fillers are only removed when they stand alone between separators.
    """
    result = remove_standalone_fillers(text, aggressive)
    result = _REPEATED_CHAR.sub(r"\1", result)
    result = normalize_punctuation(result)
    return strip_edge_punctuation(result)
