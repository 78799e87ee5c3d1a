"""消息复杂度分析（纯函数）。

根据技术词、情绪标记、问句数量和长度，把消息归为 simple / moderate / complex，
供打字模拟调整速度和“开头思考停顿”。
"""

from __future__ import annotations

import re

from .models import ComplexityLevel, MessageComplexity

TECHNICAL_PATTERNS = [
    re.compile(
        r"\b(server|database|network|wifi|password|install|software|hardware|system"
        r"|error|bug|crash|update|configure|settings)\b",
        re.I,
    ),
    re.compile(r"\b(IP|DNS|HTTP|SSL|CPU|RAM|USB|PDF|URL|API|OS)\b"),  # 缩写区分大小写
    re.compile(r"\b(\w+\.(com|org|net|exe|dll|zip))\b", re.I),
]

EMOTIONAL_PATTERNS = [
    re.compile(
        r"\b(frustrated|angry|confused|urgent|critical|broken|failed|won't work|help|please)\b",
        re.I,
    ),
    re.compile(r"!{2,}|\?{2,}"),
    re.compile(r"\b(ASAP|immediately|now|quickly)\b", re.I),
]


def _count_matches(patterns: list[re.Pattern[str]], text: str) -> int:
    return sum(sum(1 for _ in p.finditer(text)) for p in patterns)


def classify_complexity(technical_terms: int, word_count: int, emotional_intensity: float) -> ComplexityLevel:
    if technical_terms > 5 or word_count > 100 or emotional_intensity > 0.6:
        return "complex"
    if technical_terms > 2 or word_count > 50 or emotional_intensity > 0.3:
        return "moderate"
    return "simple"


def analyze_message_complexity(message: str) -> MessageComplexity:
    """分析消息复杂度；空文本/非字符串按空消息处理。"""
    text = message if isinstance(message, str) else ""

    word_count = len(text.split())
    technical_terms = _count_matches(TECHNICAL_PATTERNS, text)
    indicators = _count_matches(EMOTIONAL_PATTERNS, text)

    emotional_intensity = min(1.0, indicators / max(word_count, 1) * 10)
    question_count = text.count("?")

    return MessageComplexity(
        word_count=word_count,
        technical_terms=technical_terms,
        emotional_intensity=emotional_intensity,
        question_count=question_count,
        complexity=classify_complexity(technical_terms, word_count, emotional_intensity),
    )
