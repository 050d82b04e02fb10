"""
test_api_studio.py - Studio API E2E 테스트

엔드포인트:
- GET  / (HTML page)
- POST /api/auth/signup, /api/auth/signin, /api/auth/signout
- GET  /api/auth/session
- POST /api/generate
- GET  /api/artifacts, /api/artifacts/{id}, /{id}/export, /{id}/preview
- POST /api/artifacts/{id}/select, /api/artifacts/import, /api/artifacts/reset
- DELETE /api/artifacts/{id}
- GET  /api/admin/users, POST /api/admin/users/{id}/plan, DELETE /api/admin/users/{id}
"""

import json

from src.domain.constants import PREVIEW_CSP, SESSION_COOKIE_NAME

# =============================================================================
# Pages / Health
# =============================================================================


class TestPages:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_workspace_sets_session_cookie(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert SESSION_COOKIE_NAME in response.cookies
        assert 'lang="pt-BR"' in response.text

    def test_iframe_sandbox_has_no_same_origin(self, client, signup):
        signup()
        client.post("/api/generate", data={"prompt": "x"})

        response = client.get("/")

        assert "<iframe sandbox=" in response.text
        assert "allow-scripts" in response.text
        assert "allow-same-origin" not in response.text

    def test_unconfigured_remote_backend_still_serves_reads(self, client, monkeypatch):
        """Supabase 미설정 → 500 대신 페이지/세션 상태 + remote_unreachable."""
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_KEY", raising=False)
        state = client.app.state
        state.config = {**state.config, "backend": {"provider": "supabase"}}
        client.cookies.clear()

        page = client.get("/")
        data = client.get("/api/auth/session").json()

        assert page.status_code == 200
        assert data["session"]["phase"] == "anonymous"
        assert data["session"]["remote_unreachable"] is True


# =============================================================================
# Auth
# =============================================================================


class TestAuthApi:

    def test_signup_returns_session(self, client, signup):
        data = signup()

        assert data["confirmation_required"] is False
        assert data["session"]["phase"] == "authenticated_free"
        assert data["session"]["account"]["name"] == "Ana"
        assert data["replayed"] is None

    def test_duplicate_signup(self, client, signup):
        signup()
        client.cookies.clear()

        response = client.post(
            "/api/auth/signup", data={"email": "ana@example.com", "password": "secret123"}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["category"] == "already_registered"
        assert "já está cadastrado" in response.json()["detail"]["message"]

    def test_signin_wrong_password(self, client, signup):
        signup()
        client.cookies.clear()

        response = client.post(
            "/api/auth/signin", data={"email": "ana@example.com", "password": "errada"}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["category"] == "invalid_credentials"

    def test_confirmation_required(self, client):
        client.app.state.database.require_confirmation = True

        response = client.post(
            "/api/auth/signup", data={"email": "ana@example.com", "password": "secret123"}
        )

        data = response.json()
        assert response.status_code == 200
        assert data["confirmation_required"] is True
        assert "Verifique seu email" in data["message"]
        assert data["session"]["phase"] == "anonymous"

    def test_signout(self, client, signup):
        signup()

        data = client.post("/api/auth/signout").json()

        assert data["session"]["phase"] == "anonymous"
        assert data["session"]["artifact_count"] == 0

    def test_session_state_anonymous(self, client):
        data = client.get("/api/auth/session").json()

        assert data["session"]["phase"] == "anonymous"
        assert data["session"]["account"] is None


# =============================================================================
# Generate
# =============================================================================


class TestGenerateApi:

    def test_anonymous_request_is_held_then_replayed(self, client, signup, fake_provider):
        response = client.post("/api/generate", data={"prompt": "um relógio"})

        assert response.status_code == 401
        assert response.json()["detail"]["pending"] is True
        assert fake_provider.calls == []

        data = signup()

        assert data["replayed"] is not None
        assert data["replayed"]["saved"] is True
        assert data["replayed"]["active"] is True
        assert data["session"]["pending"] is False
        assert len(fake_provider.calls) == 1

        # 다시 로그인해도 재실행되지 않음
        client.post("/api/auth/signout")
        again = client.post(
            "/api/auth/signin", data={"email": "ana@example.com", "password": "secret123"}
        ).json()
        assert again["replayed"] is None
        assert len(fake_provider.calls) == 1

    def test_generate_with_file(self, client, signup, png_bytes, fake_provider):
        signup()

        response = client.post(
            "/api/generate",
            data={"prompt": ""},
            files={"file": ("esboco.png", png_bytes, "image/png")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "esboco.png"
        assert data["saved"] is True
        assert data["session"]["usage"]["used"] == 1
        assert fake_provider.calls[0]["mime_type"] == "image/png"

        artifact = client.get(f"/api/artifacts/{data['artifact_id']}").json()
        assert artifact["original_input"].startswith("data:image/png;base64,")

    def test_unsupported_file(self, client, signup):
        signup()

        response = client.post(
            "/api/generate", files={"file": ("notas.txt", b"texto", "text/plain")}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "UNSUPPORTED_FILE_TYPE"

    def test_quota(self, client, signup):
        signup()
        for _ in range(3):
            assert client.post("/api/generate", data={"prompt": "x"}).status_code == 200

        response = client.post("/api/generate", data={"prompt": "x"})

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "FREE_PLAN_LIMIT"

    def test_generation_failure(self, client, signup, fake_provider):
        signup()
        fake_provider.text = "Desculpe."

        response = client.post("/api/generate", data={"prompt": "x"})

        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "GENERATION_EMPTY"
        assert client.get("/api/artifacts").json()["items"] == []

    def test_run_log_written(self, client, signup, tmp_path):
        signup()
        client.post("/api/generate", data={"prompt": "x"})

        logs = list((tmp_path / "logs").glob("run_*.json"))

        assert len(logs) == 1
        assert json.loads(logs[0].read_text(encoding="utf-8"))["result"] == "success"


# =============================================================================
# Artifacts
# =============================================================================


class TestArtifactsApi:

    def _generate(self, client) -> str:
        response = client.post("/api/generate", data={"prompt": "x"})
        assert response.status_code == 200, response.text
        return response.json()["artifact_id"]

    def test_list_select_reset(self, client, signup):
        signup()
        first = self._generate(client)
        second = self._generate(client)

        listing = client.get("/api/artifacts").json()
        assert [item["id"] for item in listing["items"]] == [second, first]
        assert listing["active_id"] == second

        client.post(f"/api/artifacts/{first}/select")
        assert client.get("/api/artifacts").json()["active_id"] == first

        data = client.post("/api/artifacts/reset").json()
        assert data["session"]["active_id"] is None

    def test_preview_headers(self, client, signup, sample_html):
        signup()
        artifact_id = self._generate(client)

        response = client.get(f"/api/artifacts/{artifact_id}/preview")

        assert response.status_code == 200
        assert response.text == sample_html
        assert response.headers["content-security-policy"] == PREVIEW_CSP
        assert "allow-same-origin" not in response.headers["content-security-policy"]
        assert response.headers["x-content-type-options"] == "nosniff"

    def test_export_download(self, client, signup):
        signup()
        artifact_id = self._generate(client)

        response = client.get(f"/api/artifacts/{artifact_id}/export")

        assert response.status_code == 200
        assert 'filename="nova_cria__o_artifact.json"' in response.headers["content-disposition"]
        assert json.loads(response.content)["id"] == artifact_id

    def test_delete(self, client, signup):
        signup()
        artifact_id = self._generate(client)

        data = client.delete(f"/api/artifacts/{artifact_id}").json()
        assert data["removed"] is True
        assert data["session"]["active_id"] is None

        again = client.delete(f"/api/artifacts/{artifact_id}").json()
        assert again["removed"] is False

    def test_unknown_artifact(self, client, signup):
        signup()

        assert client.get("/api/artifacts/nope").status_code == 404
        assert client.get("/api/artifacts/nope/preview").status_code == 404
        assert client.post("/api/artifacts/nope/select").status_code == 404

    def test_import_from_other_account(self, client, signup):
        signup()
        artifact_id = self._generate(client)
        exported = client.get(f"/api/artifacts/{artifact_id}/export").content

        client.post("/api/auth/signout")
        signup(email="bia@example.com", name="Bia")
        response = client.post(
            "/api/artifacts/import",
            files={"file": ("x_artifact.json", exported, "application/json")},
        )

        assert response.status_code == 200
        imported = response.json()["artifact"]
        assert imported["id"] != artifact_id
        assert imported["active"] is True

    def test_invalid_import(self, client, signup):
        signup()

        response = client.post(
            "/api/artifacts/import",
            files={"file": ("x.json", b"{not json", "application/json")},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_IMPORT"

    def test_import_requires_auth(self, client):
        response = client.post(
            "/api/artifacts/import",
            files={"file": ("x.json", b'{"name": "x", "html": "<p/>"}', "application/json")},
        )

        assert response.status_code == 401


# =============================================================================
# Admin
# =============================================================================


class TestAdminApi:

    def test_non_admin_forbidden(self, client, signup):
        signup()

        response = client.get("/api/admin/users")

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "NOT_ADMIN"

    def test_anonymous_forbidden(self, client):
        assert client.get("/api/admin/users").status_code == 403

    def test_admin_flow(self, client, signup, make_admin):
        user = signup(email="user@example.com", name="User")["session"]["account"]
        client.cookies.clear()
        admin = signup(email="boss@example.com", name="Boss")["session"]["account"]
        make_admin(admin["id"])

        users = client.get("/api/admin/users").json()["users"]
        assert {u["email"] for u in users} == {"user@example.com", "boss@example.com"}

        granted = client.post(f"/api/admin/users/{user['id']}/plan").json()["user"]
        assert granted["plan"] == "pro"
        assert granted["pro_expires_at"] is not None

        revoked = client.post(f"/api/admin/users/{user['id']}/plan").json()["user"]
        assert revoked["plan"] == "free"
        assert revoked["pro_expires_at"] is None

        assert client.delete(f"/api/admin/users/{user['id']}").json() == {"deleted": user["id"]}
        remaining = client.get("/api/admin/users").json()["users"]
        assert [u["email"] for u in remaining] == ["boss@example.com"]

    def test_toggle_unknown_user(self, client, signup, make_admin):
        admin = signup()["session"]["account"]
        make_admin(admin["id"])

        response = client.post("/api/admin/users/nope/plan")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "ACCOUNT_NOT_FOUND"

    def test_pro_grant_lifts_quota(self, client, signup, make_admin):
        data = signup()
        account_id = data["session"]["account"]["id"]
        for _ in range(3):
            client.post("/api/generate", data={"prompt": "x"})
        make_admin(account_id)

        client.post(f"/api/admin/users/{account_id}/plan")
        response = client.post("/api/generate", data={"prompt": "x"})

        assert response.status_code == 200
        assert response.json()["session"]["phase"] == "authenticated_pro"
