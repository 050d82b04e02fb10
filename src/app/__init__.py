"""
App layer: 웹 서버 (FastAPI + Jinja2).

역할:
- 업로드/프롬프트 입력, 세션 관리 (쿠키 → SessionReconciler)
- 생성 모델/인증/저장소 provider 호출
- 생성 HTML은 sandbox 미리보기로만 서빙

주의: 폴더 구분
- src/app/templates/ → Jinja2 HTML (작업 화면)
- prompts/ (루트, 선택) → 시스템 지시문 override
"""
