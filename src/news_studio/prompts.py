"""System instructions for the AI endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import ThumbnailCopies, TitleIdeas

DEFAULT_CONCEPT = "일반"
DEFAULT_LENGTH = "보통"
DEFAULT_STYLE = "친근한 구어체"

STRUCTURE_INSTRUCTION = (
    "당신은 유튜브 영상 구조 분석가입니다. 주어진 글을 도입, 전개, 핵심 포인트, "
    "마무리로 나누어 분석하고 각 부분의 역할을 간결하게 설명하세요. 한국어로 답하세요."
)

SUMMARY_INSTRUCTION = (
    "당신은 3줄 요약 전문가입니다. 주어진 글의 핵심만 정확히 세 줄로 요약하세요. "
    "추측이나 의견은 넣지 말고 한국어로 답하세요."
)

KEY_CHECK_INSTRUCTION = "System"
KEY_CHECK_INPUT = "test"

TITLES_FALLBACK = TitleIdeas(safe_titles=["에러 발생: 내용을 확인하세요"], clickbait_titles=[])
THUMBNAIL_FALLBACK = ThumbnailCopies(emotional=["에러 발생"], informational=[], visual=[])


@dataclass(frozen=True)
class PromptOptions:
    """Caller-tunable clauses interpolated into script instructions."""

    concept: str = DEFAULT_CONCEPT
    length_option: str = DEFAULT_LENGTH
    style: str = DEFAULT_STYLE
    instruction: str = ""

    @classmethod
    def from_values(
        cls,
        concept: Optional[str] = None,
        length_option: Optional[str] = None,
        style: Optional[str] = None,
        instruction: Optional[str] = None,
    ) -> "PromptOptions":
        """Build options, applying defaults for absent or blank values."""
        return cls(
            concept=(concept or "").strip() or DEFAULT_CONCEPT,
            length_option=(length_option or "").strip() or DEFAULT_LENGTH,
            style=(style or "").strip() or DEFAULT_STYLE,
            instruction=(instruction or "").strip(),
        )

    def clauses(self) -> str:
        lines = [
            f"- 콘셉트: {self.concept}",
            f"- 분량: {self.length_option}",
            f"- 말투: {self.style}",
        ]
        if self.instruction:
            lines.append(f"- 추가 지시: {self.instruction}")
        return "\n".join(lines)


def script_transform_instruction(options: PromptOptions) -> str:
    return (
        "당신은 유튜브 대본 작가입니다. 주어진 뉴스 글을 영상 대본으로 재구성하세요.\n"
        f"{options.clauses()}\n"
        "사실 관계는 바꾸지 말고 한국어로 작성하세요."
    )


def script_new_instruction(topic: str, options: PromptOptions) -> str:
    return (
        "당신은 유튜브 대본 작가입니다. 아래 주제로 새 영상 대본을 작성하세요.\n"
        f"- 주제: {topic}\n"
        f"{options.clauses()}\n"
        "한국어로 작성하세요."
    )


def titles_instruction() -> str:
    return (
        "당신은 유튜브 제목 전문가입니다. 주어진 글에 어울리는 제목을 만드세요.\n"
        "safeTitles에는 사실에 충실한 제목 5개, clickbaitTitles에는 호기심을 "
        "자극하는 제목 5개를 넣으세요.\n"
        '반드시 {"safeTitles": [], "clickbaitTitles": []} JSON 형식으로만 응답하세요.'
    )


def thumbnail_instruction(length_option: Optional[str] = None) -> str:
    length = (length_option or "").strip() or "짧게"
    return (
        "당신은 썸네일 카피 전문가입니다. 주어진 글로 썸네일 문구를 만드세요.\n"
        f"- 길이: {length}\n"
        "emotional(감성), informational(정보), visual(시각 강조) 유형별로 3개씩 작성하세요.\n"
        '반드시 {"emotional": [], "informational": [], "visual": []} JSON 형식으로만 응답하세요.'
    )
