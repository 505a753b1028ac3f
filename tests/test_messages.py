"""
Tests for the message read/update/delete endpoints.

Tests cover:
- Listing all, unread and by email
- Lookup by id
- Mark as read (including idempotency)
- Deletion
- Unread count tracking across operations
- Not-found error payloads
"""

from tests.conftest import VALID_CONTENT, submit_message


class TestListMessages:
    """Test non-paginated listings."""

    def test_empty_database(self, client):
        response = client.get("/api/mensajes")

        assert response.status_code == 200
        assert response.json() == []

    def test_list_most_recent_first(self, client):
        """Test GET /api/mensajes returns newest messages first."""
        first = submit_message(client, name="First")
        second = submit_message(client, name="Second")
        third = submit_message(client, name="Third")

        ids = [m["id"] for m in client.get("/api/mensajes").json()]
        assert ids == [third["id"], second["id"], first["id"]]

    def test_list_unread_excludes_read(self, client):
        read = submit_message(client)
        unread = submit_message(client)
        client.patch(f"/api/mensajes/{read['id']}/leido")

        data = client.get("/api/mensajes/no-leidos").json()
        assert [m["id"] for m in data] == [unread["id"]]
        assert all(m["leido"] is False for m in data)

    def test_list_by_email_creation_order(self, client):
        """Test listing by email returns only that sender, oldest first."""
        a1 = submit_message(client, email="ana@x.com")
        submit_message(client, email="bob@mail.com")
        a2 = submit_message(client, email="ana@x.com")

        data = client.get("/api/mensajes/email/ana@x.com").json()
        assert [m["id"] for m in data] == [a1["id"], a2["id"]]
        assert all(m["email"] == "ana@x.com" for m in data)

    def test_list_by_unknown_email(self, client):
        submit_message(client)

        assert client.get("/api/mensajes/email/nobody@x.com").json() == []

    def test_response_includes_request_id_header(self, client):
        response = client.get("/api/mensajes")

        assert "x-request-id" in response.headers


class TestGetMessage:
    """Test lookup by id."""

    def test_get_existing(self, client):
        created = submit_message(client)

        response = client.get(f"/api/mensajes/{created['id']}")
        assert response.status_code == 200
        assert response.json() == created

    def test_get_missing(self, client):
        response = client.get("/api/mensajes/999")

        assert response.status_code == 404
        data = response.json()
        assert data["status_code"] == 404
        assert data["error_label"] == "Not Found"
        assert data["message"] == "Message not found with id: 999"
        assert data["request_path"] == "/api/mensajes/999"
        assert "violation_messages" not in data
        assert "timestamp" in data

    def test_get_non_integer_id(self, client):
        response = client.get("/api/mensajes/abc")

        assert response.status_code == 400

    def test_ids_beyond_integer_range_not_found(self, client):
        """Test ids too large for the id column are reported as missing."""
        huge = "99999999999999999999"

        for response in (
            client.get(f"/api/mensajes/{huge}"),
            client.patch(f"/api/mensajes/{huge}/leido"),
            client.delete(f"/api/mensajes/{huge}"),
        ):
            assert response.status_code == 404
            assert response.json()["message"] == f"Message not found with id: {huge}"


class TestMarkRead:
    """Test the read-state transition."""

    def test_mark_read(self, client):
        created = submit_message(client)

        response = client.patch(f"/api/mensajes/{created['id']}/leido")
        assert response.status_code == 200
        data = response.json()
        assert data["leido"] is True
        assert data["fechaCreacion"] == created["fechaCreacion"]
        assert data["contenido"] == created["contenido"]

    def test_mark_read_idempotent(self, client):
        """Test marking an already read message succeeds with the same state."""
        created = submit_message(client)

        first = client.patch(f"/api/mensajes/{created['id']}/leido")
        second = client.patch(f"/api/mensajes/{created['id']}/leido")
        assert second.status_code == 200
        assert second.json() == first.json()

    def test_mark_read_persists(self, client):
        created = submit_message(client)
        client.patch(f"/api/mensajes/{created['id']}/leido")

        assert client.get(f"/api/mensajes/{created['id']}").json()["leido"] is True

    def test_mark_read_missing(self, client):
        response = client.patch("/api/mensajes/42/leido")

        assert response.status_code == 404
        assert response.json()["message"] == "Message not found with id: 42"


class TestDeleteMessage:
    """Test deletion."""

    def test_delete_then_get(self, client):
        created = submit_message(client)

        response = client.delete(f"/api/mensajes/{created['id']}")
        assert response.status_code == 204
        assert response.content == b""

        assert client.get(f"/api/mensajes/{created['id']}").status_code == 404

    def test_delete_missing(self, client):
        response = client.delete("/api/mensajes/7")

        assert response.status_code == 404
        assert response.json()["message"] == "Message not found with id: 7"

    def test_delete_twice(self, client):
        created = submit_message(client)

        assert client.delete(f"/api/mensajes/{created['id']}").status_code == 204
        assert client.delete(f"/api/mensajes/{created['id']}").status_code == 404

    def test_ids_not_reused_after_delete(self, client):
        first = submit_message(client)
        client.delete(f"/api/mensajes/{first['id']}")

        second = submit_message(client)
        assert second["id"] > first["id"]


class TestUnreadCount:
    """Test the unread counter stays in sync with the store."""

    def test_count_tracks_operations(self, client):
        count_url = "/api/mensajes/no-leidos/count"
        assert client.get(count_url).json() == 0

        a = submit_message(client)
        b = submit_message(client)
        assert client.get(count_url).json() == 2

        client.patch(f"/api/mensajes/{a['id']}/leido")
        assert client.get(count_url).json() == 1

        client.delete(f"/api/mensajes/{b['id']}")
        assert client.get(count_url).json() == 0

        client.delete(f"/api/mensajes/{a['id']}")
        assert client.get(count_url).json() == 0


class TestLifecycleScenario:
    """End-to-end walk through one message's life."""

    def test_submit_read_count_delete(self, client):
        created = submit_message(client, "Ana", "ana@x.com", VALID_CONTENT)
        assert created["leido"] is False
        assert client.get("/api/mensajes/no-leidos/count").json() == 1

        read = client.patch(f"/api/mensajes/{created['id']}/leido").json()
        assert read["leido"] is True
        assert client.get("/api/mensajes/no-leidos/count").json() == 0

        assert client.delete(f"/api/mensajes/{created['id']}").status_code == 204
        assert client.get(f"/api/mensajes/{created['id']}").status_code == 404
