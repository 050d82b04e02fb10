"""
Session Reconciler: 브라우저 세션 1개의 인증/플랜/히스토리 상태.

상태 전이는 apply_auth_state() 하나로만 한다
(로그인, 가입, 세션 복원, identity 변경 알림 모두 같은 경로).

Pending 요청:
- 익명 사용자의 생성 요청 → pending 슬롯에 보관 (교체, 큐 아님)
- 인증 성공 → replay 슬롯으로 이동
- 다음 비동기 단계에서 replay 슬롯을 pop (정확히 1회 재실행)
- 인증 실패/로그아웃 → 폐기

원격 읽기:
- refresh()는 fetch 순번을 발급하고, 더 오래된 fetch 결과는 무시
- 읽기 실패 → 마지막 값 유지 + remote_unreachable (fail open)
- 생성 게이팅 전에는 반드시 refresh, 실패하면 거절 (fail closed)

쓰기:
- 한도 확인 → insert 구간은 세션 write lock 안에서만 (generate, import 공통)
- reset()은 로딩 상태만 풀고 lock은 풀지 않음
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.app.providers.backend import (
    EVENT_SIGNED_OUT,
    EVENT_USER_UPDATED,
    AuthSession,
    StudioBackend,
)
from src.app.providers.base import BackendError, compute_hash
from src.app.services.auth import (
    CONFIRMATION_SENT_MESSAGE,
    REMOTE_UNAVAILABLE_MESSAGE,
    display_name,
    to_auth_error,
)
from src.app.services.entitlement import (
    SessionPhase,
    can_generate,
    resolve_phase,
    summarize_usage,
)
from src.app.services.generation import GenerationService
from src.app.services.history import ArtifactHistory, export_artifact, parse_import
from src.core.ids import generate_artifact_id
from src.core.logging import complete_run_log, create_run_log, emit_warning, save_run_log
from src.domain.constants import FREE_PLAN_ARTIFACT_LIMIT
from src.domain.errors import (
    AuthenticationError,
    ErrorCodes,
    GenerationInProgressError,
    InputValidationError,
    PersistenceError,
    QuotaExceededError,
    RemoteUnavailableError,
    StudioError,
)
from src.domain.schemas import (
    Account,
    Artifact,
    GenerationRequest,
    Reconciled,
    UsageSummary,
)
from src.utils.retry import is_transient, retry_with_exponential_backoff

logger = logging.getLogger(__name__)

AUTH_REQUIRED_MESSAGE = "Faça login para processar seu arquivo e ver o resultado."
QUOTA_MESSAGE = "Limite atingido. Apague itens ou faça upgrade."
IN_PROGRESS_MESSAGE = "Uma geração já está em andamento."
PERSIST_FAILED_MESSAGE = (
    "O conteúdo foi gerado, mas não foi possível salvá-lo. "
    "Exporte o artefato para não perdê-lo."
)


@dataclass
class GenerationReport:
    """생성 1건의 결과."""
    artifact: Artifact
    saved: bool
    became_active: bool
    run_id: str
    warning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "artifact_id": self.artifact.id,
            "name": self.artifact.name,
            "saved": self.saved,
            "active": self.became_active,
            "run_id": self.run_id,
            "warning": self.warning,
        }


@dataclass
class SignUpResult:
    """가입 결과 (확인 메일 대기 시 session 없음)."""
    confirmation_required: bool
    message: str | None = None
    report: GenerationReport | None = None


class SessionReconciler:
    """
    세션 상태 관리자.

    Usage:
        reconciler = SessionReconciler(session_id, backend, generation, config)
        report = await reconciler.request_generation(request)  # 익명이면 None (보류)
        report = await reconciler.sign_in(email, password)     # 보류된 요청 재실행
    """

    def __init__(
        self,
        session_id: str,
        backend: StudioBackend,
        generation: GenerationService,
        config: dict,
        clock: Callable[[], datetime] | None = None,
        logs_dir: Path | None = None,
    ):
        self.session_id = session_id
        self.backend = backend
        self.generation = generation
        self.config = config
        self.clock = clock or (lambda: datetime.now(UTC))
        self.logs_dir = logs_dir

        plans = config.get("plans", {})
        self.free_limit = int(plans.get("free_artifact_limit", FREE_PLAN_ARTIFACT_LIMIT))
        reconcile = config.get("reconcile", {})
        self.read_retries = int(reconcile.get("read_retries", 2))
        self.retry_delay = float(reconcile.get("retry_delay", 0.5))

        self._auth: AuthSession | None = None
        self._authenticating = False
        self.account: Reconciled[Account] | None = None
        self.history = ArtifactHistory()

        self._pending: GenerationRequest | None = None
        self._replay: GenerationRequest | None = None

        self.is_generating = False
        self._generation_token = 0
        self._fetch_seq = 0
        self.remote_unreachable = False
        self._write_lock = asyncio.Lock()

        self._unsubscribe: Callable[[], None] | None = None
        self._ensure_subscribed()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def account_id(self) -> str | None:
        return self._auth.account_id if self._auth else None

    @property
    def current_account(self) -> Account | None:
        return self.account.value if self.account else None

    @property
    def is_authenticated(self) -> bool:
        return self._auth is not None

    @property
    def phase(self) -> SessionPhase:
        return resolve_phase(self.current_account, self.clock(), self._authenticating)

    @property
    def has_pending(self) -> bool:
        return self._pending is not None or self._replay is not None

    def usage(self) -> UsageSummary | None:
        account = self.current_account
        if account is None:
            return None
        return summarize_usage(account, len(self.history), self.clock(), self.free_limit)

    def snapshot(self) -> dict[str, Any]:
        """UI 상태 요약."""
        account = self.current_account
        usage = self.usage()
        return {
            "phase": self.phase.value,
            "account": (
                {
                    "id": account.id,
                    "email": account.email,
                    "name": account.name,
                    "plan": account.plan.value,
                    "is_admin": account.is_admin,
                }
                if account
                else None
            ),
            "usage": usage.to_dict() if usage else None,
            "pending": self.has_pending,
            "is_generating": self.is_generating,
            "active_id": self.history.active_id,
            "artifact_count": len(self.history),
            "stale": self.account.is_stale if self.account else False,
            "remote_unreachable": self.remote_unreachable,
        }

    # =========================================================================
    # Transition
    # =========================================================================

    def apply_auth_state(
        self, session: AuthSession | None, *, failed: bool = False
    ) -> None:
        """
        인증 상태 전이 (유일한 전이 함수).

        - failed: 인증 시도 실패 → pending 폐기, 기존 세션 유지
        - session None: 로그아웃 → 히스토리/active/pending 즉시 제거
        - 새 계정: 히스토리 초기화, pending → replay
        - 같은 계정: 토큰 갱신만
        """
        self._authenticating = False

        if failed:
            if self._pending is not None:
                logger.info(f"[{self.session_id}] Auth failed; discarding pending request")
            self._pending = None
            self._replay = None
            return

        if session is None:
            if self._auth is not None:
                logger.info(f"[{self.session_id}] Signed out account {self._auth.account_id}")
            self._auth = None
            self.account = None
            self.history.clear()
            self._pending = None
            self._replay = None
            # 진행 중인 생성 결과가 active를 덮어쓰지 못하게
            self._generation_token += 1
            self.is_generating = False
            return

        if self._auth is not None and self._auth.account_id == session.account_id:
            self._auth = session
            return

        if self._auth is not None:
            self.history.clear()

        self._auth = session
        self.account = Reconciled(
            optimistic=Account(
                id=session.account_id,
                email=session.email,
                name=display_name(session.name, session.email),
            )
        )
        logger.info(f"[{self.session_id}] Authenticated account {session.account_id}")

        if self._pending is not None:
            self._replay = self._pending
            self._pending = None

    def handle_identity_event(self, event: str, session: AuthSession | None) -> None:
        """identity provider 변경 알림 (동기 콜백)."""
        logger.debug(f"[{self.session_id}] Identity event: {event}")
        if event == EVENT_SIGNED_OUT or session is None:
            self.apply_auth_state(None)
            return
        self.apply_auth_state(session)
        if event == EVENT_USER_UPDATED and self.account is not None:
            # profile 변경 → 다음 refresh까지 stale
            self.account.propose(self.account.value)

    # =========================================================================
    # Authentication Flows
    # =========================================================================

    async def sign_in(
        self, email: str, password: str, replay: bool = True
    ) -> GenerationReport | None:
        """
        로그인 + refresh + 보류 요청 재실행.

        replay=False면 재실행은 호출자가 drain_replay()로 직접 한다.

        Returns:
            재실행된 생성 결과 (보류 요청 없으면 None)
        """
        self._ensure_subscribed()
        self._authenticating = True
        try:
            session = await self.backend.sign_in(email.strip(), password)
        except BackendError as e:
            self.apply_auth_state(None, failed=True)
            raise to_auth_error(e) from e

        self.apply_auth_state(session)
        await self.refresh()
        return await self.drain_replay() if replay else None

    async def sign_up(
        self, email: str, password: str, name: str = "", replay: bool = True
    ) -> SignUpResult:
        """
        가입.

        이메일 확인이 필요하면 성공 + 안내 메시지 (보류 요청 유지).
        """
        email = email.strip()
        self._ensure_subscribed()
        self._authenticating = True
        try:
            session = await self.backend.sign_up(
                email, password, display_name(name, email)
            )
        except BackendError as e:
            self.apply_auth_state(None, failed=True)
            raise to_auth_error(e) from e

        if session is None:
            # 보류 요청이 있으면 확인 후 로그인까지 Authenticating 유지
            self._authenticating = self._pending is not None
            logger.info(f"[{self.session_id}] Sign up for {email} awaits confirmation")
            return SignUpResult(
                confirmation_required=True, message=CONFIRMATION_SENT_MESSAGE
            )

        self.apply_auth_state(session)
        await self.refresh()
        report = await self.drain_replay() if replay else None
        return SignUpResult(confirmation_required=False, report=report)

    async def sign_out(self) -> None:
        """로그아웃 (로컬 상태는 원격 호출 전에 즉시 제거)."""
        self.apply_auth_state(None)
        try:
            await self.backend.sign_out()
        except BackendError as e:
            logger.warning(f"[{self.session_id}] Remote sign out failed: {e}")

    async def restore(self, replay: bool = True) -> GenerationReport | None:
        """
        기존 로그인 세션 복원 (페이지 로드).

        Returns:
            재실행된 생성 결과 (없으면 None)
        """
        self._ensure_subscribed()
        try:
            session = await self.backend.get_session()
        except BackendError as e:
            self.remote_unreachable = True
            logger.warning(f"[{self.session_id}] Session restore failed: {e}")
            return None

        if session is None:
            if self._auth is not None:
                self.apply_auth_state(None)
            return None

        self.apply_auth_state(session)
        await self.refresh()
        return await self.drain_replay() if replay else None

    async def drain_replay(self) -> GenerationReport | None:
        """replay 슬롯 pop → 1회 실행."""
        request, self._replay = self._replay, None
        if request is None:
            return None
        logger.info(f"[{self.session_id}] Replaying request held before sign in")
        return await self.generate(request)

    # =========================================================================
    # Remote Reads
    # =========================================================================

    async def refresh(self) -> bool:
        """
        원격 account + artifact 목록 재조회.

        Returns:
            조회 성공 여부 (더 오래된 fetch 결과는 버리지만 성공으로 본다)
        """
        if self._auth is None:
            return False

        self._fetch_seq += 1
        version = self._fetch_seq
        account_id = self._auth.account_id

        try:
            profile = await retry_with_exponential_backoff(
                self.backend.get_profile,
                self.read_retries,
                self.retry_delay,
                60.0,
                2.0,
                (BackendError,),
                account_id,
                retry_if=is_transient,
            )
            rows = await retry_with_exponential_backoff(
                self.backend.list_artifacts,
                self.read_retries,
                self.retry_delay,
                60.0,
                2.0,
                (BackendError,),
                account_id,
                retry_if=is_transient,
            )
        except BackendError as e:
            self.remote_unreachable = True
            logger.warning(f"[{self.session_id}] Refresh failed, keeping last known state: {e}")
            return False

        if self.account_id != account_id or self.account is None:
            logger.debug(f"[{self.session_id}] Dropping refresh for previous account")
            return False

        if profile is None:
            logger.warning(f"[{self.session_id}] No profile row for {account_id}")
            account = self.account.optimistic
        else:
            account = Account.from_dict(profile)

        self.account.confirm(account, version)
        self.history.confirm([Artifact.from_record(row) for row in rows], version)
        self.remote_unreachable = False
        return True

    async def check_entitlement(self) -> None:
        """
        생성 가능 여부 확인 (refresh 후 판정).

        사용량은 저장소의 row 수. 한도를 쓰는 insert와 같은
        write lock 안에서 호출해야 한다.

        Raises:
            AuthenticationError: 익명
            RemoteUnavailableError: 원격 조회 실패 (fail closed)
            QuotaExceededError: free 한도 도달
        """
        if not self.is_authenticated:
            raise AuthenticationError(ErrorCodes.AUTH_REQUIRED, AUTH_REQUIRED_MESSAGE)

        if not await self.refresh():
            raise RemoteUnavailableError(
                ErrorCodes.REMOTE_UNAVAILABLE, REMOTE_UNAVAILABLE_MESSAGE
            )

        try:
            used = await self.backend.count_artifacts(self._require_account_id())
        except BackendError as e:
            self.remote_unreachable = True
            logger.warning(f"[{self.session_id}] Artifact count failed: {e}")
            raise RemoteUnavailableError(
                ErrorCodes.REMOTE_UNAVAILABLE, REMOTE_UNAVAILABLE_MESSAGE
            ) from e

        if not can_generate(self.phase, used, self.free_limit):
            raise QuotaExceededError(
                ErrorCodes.FREE_PLAN_LIMIT, QUOTA_MESSAGE, used=used, limit=self.free_limit
            )

    # =========================================================================
    # Generation
    # =========================================================================

    async def request_generation(
        self, request: GenerationRequest
    ) -> GenerationReport | None:
        """
        생성 요청 진입점.

        Returns:
            GenerationReport 또는 None (익명 → pending 보류, 로그인 필요)
        """
        if not self.is_authenticated:
            if self._pending is not None:
                logger.info(f"[{self.session_id}] Replacing pending request")
            self._pending = request
            # Anonymous → Authenticating (인증 성공/실패 시 apply_auth_state가 해제)
            self._authenticating = True
            return None
        return await self.generate(request)

    async def generate(self, request: GenerationRequest) -> GenerationReport:
        """
        게이팅 → 생성 → 저장 → 히스토리 반영.

        Raises:
            GenerationInProgressError: 이미 생성 중
            AuthenticationError / QuotaExceededError / RemoteUnavailableError: 거절
            InputValidationError / GenerationError: 생성 실패 (아무것도 저장 안 함)
        """
        run_log = create_run_log(self.session_id, self.account_id)
        run_log.input_mime_type = request.mime_type
        run_log.input_size = len(request.file_bytes) if request.file_bytes else 0
        run_log.prompt_hash = compute_hash(request.prompt)
        run_log.model_requested = self.generation.model

        if self.is_generating:
            complete_run_log(run_log, "rejected", ErrorCodes.GENERATION_IN_PROGRESS)
            self._save_run_log(run_log)
            raise GenerationInProgressError(
                ErrorCodes.GENERATION_IN_PROGRESS, IN_PROGRESS_MESSAGE
            )

        self.is_generating = True
        self._generation_token += 1
        token = self._generation_token

        try:
            async with self._write_lock:
                try:
                    await self.check_entitlement()
                except (AuthenticationError, QuotaExceededError, RemoteUnavailableError) as e:
                    complete_run_log(run_log, "rejected", e.code, e.to_dict())
                    raise

                owner_id = self.account_id or ""
                self.history.active_id = None

                try:
                    outcome = await self.generation.generate(request)
                except StudioError as e:
                    complete_run_log(run_log, "failed", e.code, e.to_dict())
                    raise

                result = outcome.result
                run_log.model_used = result.model_used
                run_log.fallback_triggered = result.fallback_triggered
                run_log.raw_output_hash = result.raw_output_hash

                artifact = Artifact(
                    id=generate_artifact_id(),
                    owner_id=owner_id,
                    name=outcome.name,
                    html=outcome.html,
                    original_input=outcome.original_input,
                    created_at=self.clock(),
                )

                saved = True
                warning: str | None = None
                try:
                    row = await self.backend.insert_artifact(artifact.to_record())
                    artifact = Artifact.from_record(row)
                except BackendError as e:
                    saved = False
                    warning = PERSIST_FAILED_MESSAGE
                    logger.error(f"[{self.session_id}] Failed to persist artifact: {e}")
                    emit_warning(run_log, ErrorCodes.PERSIST_FAILED, "insert_artifact", e.message)

                became_active = False
                if self.account_id == owner_id:
                    # 저장 실패분도 로컬(optimistic)에는 남김. 다음 refresh에서 원격 목록으로 교체됨
                    self.history.prepend(artifact)
                    if token == self._generation_token:
                        self.history.active_id = artifact.id
                        became_active = True

            run_log.artifact_id = artifact.id
            run_log.saved = saved
            complete_run_log(run_log, "success")

            return GenerationReport(
                artifact=artifact,
                saved=saved,
                became_active=became_active,
                run_id=run_log.run_id,
                warning=warning,
            )
        finally:
            if token == self._generation_token:
                self.is_generating = False
            self._save_run_log(run_log)

    def reset(self) -> None:
        """
        active 해제 + 로딩 상태 해제 (진행 중 결과는 active가 되지 못함).

        write lock은 그대로. 다음 생성은 진행 중인 insert가 끝난 뒤 한도를 다시 본다.
        """
        self._generation_token += 1
        self.is_generating = False
        self.history.active_id = None

    # =========================================================================
    # History Operations
    # =========================================================================

    def select(self, artifact_id: str) -> Artifact:
        artifact = self.history.select(artifact_id)
        if artifact is None:
            raise InputValidationError(
                ErrorCodes.ARTIFACT_NOT_FOUND,
                "Artefato não encontrado.",
                artifact_id=artifact_id,
            )
        return artifact

    def get_artifact(self, artifact_id: str) -> Artifact:
        artifact = self.history.get(artifact_id)
        if artifact is None:
            raise InputValidationError(
                ErrorCodes.ARTIFACT_NOT_FOUND,
                "Artefato não encontrado.",
                artifact_id=artifact_id,
            )
        return artifact

    async def delete_artifact(self, artifact_id: str) -> bool:
        """
        artifact 삭제 (원격 → 로컬).

        Returns:
            로컬 목록에서 제거됐는지 (없는 id면 False, 에러 아님)
        """
        owner_id = self._require_account_id()
        try:
            await self.backend.delete_artifact(owner_id, artifact_id)
        except BackendError as e:
            raise self._persistence_error(e, ErrorCodes.DELETE_FAILED) from e
        return self.history.remove(artifact_id)

    def export_artifact(self, artifact_id: str) -> tuple[str, str]:
        return export_artifact(self.get_artifact(artifact_id))

    async def import_artifact(self, text: str | bytes) -> Artifact:
        """
        export JSON import → 저장 후 active.

        검증 실패 시 아무것도 바꾸지 않음.
        이미 히스토리에 있는 id면 active만 변경.
        """
        owner_id = self._require_account_id()
        artifact = parse_import(text, owner_id)

        if artifact.id in self.history:
            return self.select(artifact.id)

        record = artifact.to_record()
        # 저장소가 id/created_at 발급 (다른 계정의 id와 충돌 방지)
        record.pop("id")
        record.pop("created_at")

        async with self._write_lock:
            await self.check_entitlement()
            if self.account_id != owner_id:
                raise AuthenticationError(ErrorCodes.AUTH_REQUIRED, AUTH_REQUIRED_MESSAGE)

            try:
                row = await self.backend.insert_artifact(record)
            except BackendError as e:
                raise self._persistence_error(e, ErrorCodes.PERSIST_FAILED) from e

            stored = Artifact.from_record(row)
            self.history.prepend(stored)
            self.history.active_id = stored.id
        return stored

    # =========================================================================
    # Internal
    # =========================================================================

    def _require_account_id(self) -> str:
        if self._auth is None:
            raise AuthenticationError(ErrorCodes.AUTH_REQUIRED, AUTH_REQUIRED_MESSAGE)
        return self._auth.account_id

    def _persistence_error(self, error: BackendError, code: str) -> StudioError:
        if error.unreachable:
            self.remote_unreachable = True
            return RemoteUnavailableError(
                ErrorCodes.REMOTE_UNAVAILABLE, REMOTE_UNAVAILABLE_MESSAGE
            )
        return PersistenceError(code, f"Erro ao salvar: {error.message}")

    def _save_run_log(self, run_log: Any) -> None:
        if self.logs_dir is not None:
            save_run_log(run_log, self.logs_dir)

    def _ensure_subscribed(self) -> None:
        """identity 알림 구독 (백엔드 연결 불가면 다음 인증 시도에서 재시도)."""
        if self._unsubscribe is not None:
            return
        try:
            self._unsubscribe = self.backend.subscribe(self.handle_identity_event)
        except BackendError as e:
            self.remote_unreachable = True
            logger.warning(f"[{self.session_id}] Identity subscription unavailable: {e}")

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class SessionRegistry:
    """
    session_id → SessionReconciler.

    app.state에 1개 보관 (모듈 전역 싱글턴 없음).
    """

    def __init__(self, factory: Callable[[str], SessionReconciler]):
        self._factory = factory
        self._sessions: dict[str, SessionReconciler] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str | None) -> SessionReconciler | None:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def create(self, session_id: str) -> SessionReconciler:
        reconciler = self._factory(session_id)
        self._sessions[session_id] = reconciler
        return reconciler

    def discard(self, session_id: str) -> None:
        reconciler = self._sessions.pop(session_id, None)
        if reconciler is not None:
            reconciler.close()

    def close(self) -> None:
        for session_id in list(self._sessions):
            self.discard(session_id)
