import unittest
from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError

from app import app, db
from models.user import User
from services.audit_service import audit_write_failures
from tests.utils.db import AppTestCase
from tests.utils.github import FakeGitHub
from utils.sync_settings import SyncSettings

MASTER_SHA = "c" * 40
CUSTOM_SHA = "d" * 40
CUSTOM_URL = "https://github.com/members/custom-site"
MASTER_URL = "https://github.com/members/master-site.git"


class GitSyncEndpointTestCase(AppTestCase):
    def setUp(self):
        super().setUp()
        self.user_id, self.token = self.create_user("collector", role=User.COLLECTOR)
        self.github = FakeGitHub()
        self.github.add_repository("members/master-site", refs={"main": MASTER_SHA})
        self.github.add_repository("members/custom-site", refs={"main": CUSTOM_SHA})
        patcher = patch("services.github_service._request", side_effect=self.github)
        self.request_mock = patcher.start()
        self.addCleanup(patcher.stop)

    def _post(self, payload, token="default"):
        headers = {}
        if token == "default":
            token = self.token
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"
        return self.client.post("/git-sync/", json=payload, headers=headers)

    def test_preflight_returns_cors_headers(self):
        response = self.client.options("/git-sync/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")
        self.assertIn("authorization", response.headers["Access-Control-Allow-Headers"])
        self.assertEqual(self.sync_logs(), [])

    def test_missing_authorization_header_fails_before_github(self):
        app.config["GIT_SYNC_SETTINGS"] = SyncSettings(
            github_app_id="1", github_installation_id="2", github_private_key_path="/tmp/key.pem"
        )
        with patch("utils.github_token.GithubIntegration") as integration:
            response = self._post({"operation": "pull", "customUrl": CUSTOM_URL}, token=None)

        self.assertEqual(response.status_code, 400)
        payload = response.get_json()
        self.assertFalse(payload["success"])
        self.assertEqual(payload["error"], "No authorization header")
        self.request_mock.assert_not_called()
        integration.assert_not_called()

        logs = self.sync_logs()
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0]["operation_type"], "error")
        self.assertEqual(logs[0]["status"], "failed")
        self.assertIsNone(logs[0]["created_by"])

    def test_pull_updates_custom_branch(self):
        response = self._post({"operation": "pull", "customUrl": CUSTOM_URL, "masterUrl": MASTER_URL})

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertTrue(payload["success"])
        self.assertEqual(payload["details"]["sha"], MASTER_SHA)
        self.assertEqual(payload["details"]["destination"]["repository"], "members/custom-site")
        self.assertFalse(payload["details"]["created"])
        self.assertEqual(self.github.refs("members/custom-site")["main"], MASTER_SHA)
        self.assertEqual(self.github.mutating_calls("members/master-site"), [])
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")

        logs = self.sync_logs()
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0]["operation_type"], "pull")
        self.assertEqual(logs[0]["status"], "completed")
        self.assertEqual(logs[0]["created_by"], self.user_id)
        self.assertEqual(logs[0]["message"], payload["message"])

    def test_push_updates_master_branch(self):
        response = self._post({"operation": "push", "customUrl": CUSTOM_URL, "masterUrl": MASTER_URL})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.github.refs("members/master-site")["main"], CUSTOM_SHA)
        self.assertEqual(self.github.mutating_calls("members/custom-site"), [])
        self.assertEqual(self.sync_logs()[0]["operation_type"], "push")

    def test_pull_with_deleted_master_branch_fails_without_write(self):
        del self.github.refs("members/master-site")["main"]

        response = self._post({"operation": "pull", "customUrl": CUSTOM_URL, "masterUrl": MASTER_URL})

        self.assertEqual(response.status_code, 400)
        payload = response.get_json()
        self.assertFalse(payload["success"])
        self.assertIn("reference not found", payload["error"])
        self.assertEqual(self.github.mutating_calls(), [])

        logs = self.sync_logs()
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0]["status"], "failed")
        self.assertEqual(logs[0]["operation_type"], "error")
        self.assertEqual(logs[0]["created_by"], self.user_id)
        self.assertIn("state=branches-resolved partial=False", logs[0]["error_details"])

    def test_invalid_custom_url_is_rejected(self):
        response = self._post({"operation": "pull", "customUrl": "https://gitlab.com/a/b", "masterUrl": MASTER_URL})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Invalid custom repository URL")
        self.request_mock.assert_not_called()
        self.assertEqual(len(self.sync_logs()), 1)

    def test_invalid_operation_is_rejected(self):
        response = self._post({"operation": "merge", "customUrl": CUSTOM_URL, "masterUrl": MASTER_URL})

        self.assertEqual(response.status_code, 400)
        self.assertIn("pull", response.get_json()["error"])
        self.request_mock.assert_not_called()

    def test_missing_custom_url_is_rejected(self):
        response = self._post({"operation": "pull"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Missing required URLs")

    def test_oversized_master_url_is_rejected(self):
        master_url = "https://github.com/x/" + "y" * 5000

        response = self._post({"operation": "pull", "customUrl": CUSTOM_URL, "masterUrl": master_url})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Master repository URL is too long")
        self.request_mock.assert_not_called()

    def test_push_without_master_url_is_rejected(self):
        response = self._post({"operation": "push", "customUrl": CUSTOM_URL})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Missing required URLs")
        self.request_mock.assert_not_called()

    def test_pull_without_master_url_only_verifies_access(self):
        response = self._post({"operation": "pull", "customUrl": CUSTOM_URL})

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["message"], f"Successfully verified access to {CUSTOM_URL}")
        self.assertFalse(payload["details"]["synced"])
        self.assertEqual(self.github.mutating_calls(), [])
        self.assertEqual(self.sync_logs()[0]["status"], "completed")

    def test_configured_master_url_is_used_when_omitted(self):
        app.config["GIT_SYNC_SETTINGS"] = SyncSettings(github_pat="pat-123", default_master_url=MASTER_URL)

        response = self._post({"operation": "push", "customUrl": CUSTOM_URL})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.github.refs("members/master-site")["main"], CUSTOM_SHA)
        self.assertTrue(all(call.token == "pat-123" for call in self.github.calls))

    def test_missing_github_token_is_a_failure(self):
        app.config["GIT_SYNC_SETTINGS"] = SyncSettings()

        response = self._post({"operation": "pull", "customUrl": CUSTOM_URL, "masterUrl": MASTER_URL})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "GitHub token not configured")
        self.request_mock.assert_not_called()
        self.assertEqual(self.sync_logs()[0]["status"], "failed")

    def test_invalid_bearer_token_is_rejected(self):
        response = self._post(
            {"operation": "pull", "customUrl": CUSTOM_URL, "masterUrl": MASTER_URL},
            token="not-a-token",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Invalid or expired access token")
        self.request_mock.assert_not_called()

    def test_inaccessible_custom_repository_fails(self):
        response = self._post(
            {
                "operation": "pull",
                "customUrl": "https://github.com/members/private-site",
                "masterUrl": MASTER_URL,
            }
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("Failed to get repository info", response.get_json()["error"])
        self.assertEqual(self.github.mutating_calls(), [])

    def test_audit_failure_does_not_change_response(self):
        with patch.object(db.session, "commit", side_effect=SQLAlchemyError("database offline")):
            response = self._post({"operation": "pull", "customUrl": CUSTOM_URL, "masterUrl": MASTER_URL})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()["success"])
        self.assertEqual(audit_write_failures(), 1)
        self.assertEqual(self.sync_logs(), [])


class GitSyncLogsEndpointTestCase(AppTestCase):
    def setUp(self):
        super().setUp()
        self.admin_id, self.admin_token = self.create_user("admin", role=User.ADMIN)
        self.member_id, self.member_token = self.create_user("member")
        fake = FakeGitHub()
        fake.add_repository("members/custom-site", refs={"main": CUSTOM_SHA})
        with patch("services.github_service._request", side_effect=fake):
            for token in (self.admin_token, self.member_token, self.member_token):
                self.client.post(
                    "/git-sync/",
                    json={"operation": "pull", "customUrl": CUSTOM_URL},
                    headers={"Authorization": f"Bearer {token}"},
                )

    def _get(self, token, query=""):
        return self.client.get(f"/git-sync/logs{query}", headers={"Authorization": f"Bearer {token}"})

    def test_member_sees_own_entries(self):
        response = self._get(self.member_token)

        self.assertEqual(response.status_code, 200)
        logs = response.get_json()["logs"]
        self.assertEqual(len(logs), 2)
        self.assertTrue(all(entry["created_by"] == self.member_id for entry in logs))
        self.assertGreater(logs[0]["id"], logs[1]["id"])

    def test_admin_sees_all_entries(self):
        logs = self._get(self.admin_token).get_json()["logs"]
        self.assertEqual(len(logs), 3)

    def test_limit_is_applied(self):
        logs = self._get(self.admin_token, "?limit=1").get_json()["logs"]
        self.assertEqual(len(logs), 1)

    def test_requires_authentication(self):
        response = self.client.get("/git-sync/logs")
        self.assertEqual(response.status_code, 401)

        response = self._get("garbage")
        self.assertEqual(response.status_code, 401)


if __name__ == "__main__":
    unittest.main()
