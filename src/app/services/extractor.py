"""
Artifact Extractor: 모델 원문 → 단일 HTML 문서.

출력은 항상 둘 중 하나:
- `<!DOCTYPE html`로 시작해 `</html>`로 끝나는 문자열 (대소문자 무시)
- FAILURE_SENTINEL

순수 함수. I/O 없음, 예외 없음.
"""

import re

FAILURE_SENTINEL = "<!-- Falha ao gerar conteúdo -->"

_DOCTYPE_RE = re.compile(r"<!DOCTYPE\s+html\b", re.IGNORECASE)
_HTML_CLOSE_RE = re.compile(r"</html\s*>", re.IGNORECASE)
_HTML_OPEN_RE = re.compile(r"<html[\s>]", re.IGNORECASE)
_LEADING_FENCE_RE = re.compile(r"^\s*```(?:html)?[^\S\n]*\n?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\n?\s*```\s*$")
_TAG_RE = re.compile(r"<[a-zA-Z][^>]*>")

_DOCTYPE = "<!DOCTYPE html>"


def extract_html_document(raw: str | None) -> str:
    """
    모델 응답에서 HTML 문서 추출.

    순서 (먼저 맞는 규칙 적용):
    1. 첫 doctype ~ 그 뒤 첫 </html> (양 끝 포함)
    2. 코드 펜스 제거 후:
       - <html>...</html> 요소 → doctype을 붙여 반환
       - 마크업 조각 → 최소 문서로 감싸서 반환
       - 그 외 (설명문만 있음) → sentinel
    3. 빈 입력 → sentinel

    Args:
        raw: 모델 원문 (None 허용)

    Returns:
        HTML 문서 또는 FAILURE_SENTINEL
    """
    if raw is None or not isinstance(raw, str) or not raw.strip():
        return FAILURE_SENTINEL

    document = _slice_document(raw)
    if document is not None:
        return document

    body = _strip_fences(raw).strip()
    if not body:
        return FAILURE_SENTINEL

    close = _HTML_CLOSE_RE.search(body)
    if close:
        open_match = _HTML_OPEN_RE.search(body, 0, close.start())
        start = open_match.start() if open_match else 0
        return f"{_DOCTYPE}\n{body[start:close.end()]}"

    if _TAG_RE.search(body):
        return f"{_DOCTYPE}\n<html>\n<body>\n{body}\n</body>\n</html>"

    return FAILURE_SENTINEL


def is_failure_sentinel(text: str | None) -> bool:
    """추출 실패 여부."""
    return text is None or text.strip() == FAILURE_SENTINEL


def _slice_document(text: str) -> str | None:
    doctype = _DOCTYPE_RE.search(text)
    if doctype is None:
        return None
    # 여러 개면 doctype 뒤의 첫 번째 (뒤에 붙은 설명문 제외)
    close = _HTML_CLOSE_RE.search(text, doctype.end())
    if close is None:
        return None
    return text[doctype.start():close.end()]


def _strip_fences(text: str) -> str:
    text = _LEADING_FENCE_RE.sub("", text, count=1)
    return _TRAILING_FENCE_RE.sub("", text, count=1)
