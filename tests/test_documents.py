from fastapi import status
from app.core.exceptions import StorageError
from app.models.archive import Archive
from app.models.audit_log import AuditLog
from app.models.document import Document
from app.models.folder import Folder
from app.models.user import UserRole


def folder_members(client, name):
    response = client.get(f"/api/folders/{name}")
    if response.status_code == status.HTTP_404_NOT_FOUND:
        return None
    return sorted(response.json()["data"]["document_ids"])


class TestCreateDocument:
    """POST /api/documents"""

    def test_create_files_document_into_new_folder(self, client, coach_headers, db_session):
        response = client.post(
            "/api/documents",
            json={"name": "Q1.pdf", "original_filename": "q1.pdf", "format": "pdf", "folder": "X", "tags": ["finance"]},
            headers=coach_headers,
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["message"] == "New Document Uploaded"
        doc = body["data"]
        assert doc["folder"] == "X"
        assert doc["tags"] == ["finance"]
        assert folder_members(client, "X") == [doc["id"]]

        log = db_session.query(AuditLog).filter(AuditLog.title == "Document uploaded to - X").first()
        assert log.meta == {"documentId": doc["id"], "folder": "X"}

    def test_second_document_joins_existing_folder(self, client, create_document, db_session):
        first = create_document("a.pdf", "X")
        second = create_document("b.pdf", "X")

        assert folder_members(client, "X") == sorted([first["id"], second["id"]])
        assert db_session.query(Folder).filter(Folder.name == "X").count() == 1

    def test_default_folder(self, client, coach_headers):
        response = client.post("/api/documents", json={"name": "misc.txt"}, headers=coach_headers)

        assert response.json()["data"]["folder"] == "others"
        assert folder_members(client, "others") == [response.json()["data"]["id"]]

    def test_create_forbidden_for_player(self, client, auth_headers):
        response = client.post(
            "/api/documents", json={"name": "a.pdf", "folder": "X"}, headers=auth_headers(UserRole.PLAYER)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestListDocuments:
    """GET /api/documents and GET /api/documents/{id}"""

    def test_search_is_case_insensitive_across_fields(self, client, create_document):
        create_document("Match report.pdf", "Reports")
        create_document("Lineup.pdf", "Squad", description="Final REPORT lineup")
        create_document("Kit.png", "Media", tags=["report-card"])
        create_document("Budget.xlsx", "Finance")

        response = client.get("/api/documents", params={"doc_search": "report"})

        names = sorted(d["name"] for d in response.json()["data"])
        assert names == ["Kit.png", "Lineup.pdf", "Match report.pdf"]

    def test_search_treats_wildcards_literally(self, client, create_document):
        create_document("100%.pdf", "Reports")
        create_document("plain.pdf", "Reports")

        response = client.get("/api/documents", params={"doc_search": "%"})

        assert [d["name"] for d in response.json()["data"]] == ["100%.pdf"]

    def test_folder_and_tag_filters(self, client, create_document):
        create_document("a.pdf", "Reports", tags=["finance", "q1"])
        create_document("b.pdf", "Reports", tags=["medical"])
        create_document("c.pdf", "Other", tags=["finance"])

        by_tag = client.get("/api/documents", params={"tags": "finance,q4"}).json()["data"]
        by_both = client.get("/api/documents", params={"tags": "finance", "folder": "Reports"}).json()["data"]

        assert sorted(d["name"] for d in by_tag) == ["a.pdf", "c.pdf"]
        assert [d["name"] for d in by_both] == ["a.pdf"]

    def test_accented_tags_are_searchable(self, client, create_document):
        create_document("squad.pdf", "Squad", tags=["équipe"])
        create_document("kit.pdf", "Squad", tags=["equipe"])

        by_tag = client.get("/api/documents", params={"tags": "équipe"}).json()
        by_search = client.get("/api/documents", params={"doc_search": "équipe"}).json()

        assert by_tag["pagination"]["total"] == 1
        assert [d["name"] for d in by_tag["data"]] == ["squad.pdf"]
        assert [d["name"] for d in by_search["data"]] == ["squad.pdf"]
        assert by_search["data"][0]["tags"] == ["équipe"]

    def test_pagination_newest_first(self, client, create_document):
        for name in ("one.pdf", "two.pdf", "three.pdf"):
            create_document(name, "Reports")

        response = client.get("/api/documents", params={"page": 2, "limit": 2})

        body = response.json()
        assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}
        assert [d["name"] for d in body["data"]] == ["one.pdf"]

    def test_get_missing_document(self, client):
        response = client.get("/api/documents/999")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"success": False, "message": "Document not found"}


class TestUpdateDocument:
    """PUT /api/documents/{id}"""

    def test_changing_folder_moves_membership(self, client, create_document, coach_headers):
        doc = create_document("a.pdf", "A")

        response = client.put(f"/api/documents/{doc['id']}", json={"folder": "B"}, headers=coach_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["folder"] == "B"
        assert folder_members(client, "A") == []
        assert folder_members(client, "B") == [doc["id"]]

    def test_metadata_update_keeps_membership(self, client, create_document, coach_headers):
        doc = create_document("a.pdf", "A")

        response = client.put(
            f"/api/documents/{doc['id']}",
            json={"description": "Signed copy", "tags": ["contract"]},
            headers=coach_headers,
        )

        data = response.json()["data"]
        assert data["description"] == "Signed copy"
        assert data["tags"] == ["contract"]
        assert data["updated_by"] is not None
        assert folder_members(client, "A") == [doc["id"]]

    def test_update_missing_document(self, client, coach_headers):
        response = client.put("/api/documents/999", json={"name": "x"}, headers=coach_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestDeleteDocument:
    """DELETE /api/documents/{id}"""

    def test_delete_removes_file_record_and_membership(self, client, create_document, coach_headers, db_session, mock_storage):
        doc = create_document("a.pdf", "Reports")

        response = client.delete(f"/api/documents/{doc['id']}", headers=coach_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["id"] == doc["id"]
        mock_storage.assert_called_once_with([{"public_id": "docs/a.pdf", "resource_type": None}])
        assert client.get(f"/api/documents/{doc['id']}").status_code == status.HTTP_404_NOT_FOUND
        assert folder_members(client, "Reports") == []
        archived = db_session.query(Archive).filter(Archive.original_id == doc["id"]).one()
        assert archived.source_collection == "documents"
        assert archived.data["name"] == "a.pdf"

    def test_storage_failure_leaves_document_in_place(self, client, create_document, coach_headers, db_session, mock_storage):
        doc = create_document("a.pdf", "Reports")
        mock_storage.side_effect = StorageError("Storage unavailable")

        response = client.delete(f"/api/documents/{doc['id']}", headers=coach_headers)

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["message"] == "Storage unavailable"
        assert db_session.get(Document, doc["id"]) is not None
        assert folder_members(client, "Reports") == [doc["id"]]

    def test_delete_missing_document(self, client, coach_headers, mock_storage):
        response = client.delete("/api/documents/999", headers=coach_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        mock_storage.assert_not_called()


class TestBulkDeleteDocuments:
    """DELETE /api/documents"""

    def test_failures_are_collected(self, client, create_document, coach_headers, mock_storage):
        a = create_document("a.pdf", "Reports")
        b = create_document("b.pdf", "Reports")
        c = create_document("c.pdf", "Reports")
        mock_storage.side_effect = [[], StorageError("Storage unavailable"), []]

        response = client.request(
            "DELETE",
            "/api/documents",
            json=[{"_id": a["id"]}, {"id": b["id"]}, {"id": c["id"], "name": "c.pdf"}, {"id": 999}],
            headers=coach_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["deleted"] == 2
        assert data["failed"] == 2
        assert data["errors"] == [
            {"id": b["id"], "error": "Storage unavailable"},
            {"id": 999, "error": "Document not found"},
        ]
        assert folder_members(client, "Reports") == [b["id"]]

    def test_empty_list_is_bad_request(self, client, coach_headers):
        response = client.request("DELETE", "/api/documents", json=[], headers=coach_headers)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "No documents provided for deletion"


class TestMoveCopyDocuments:
    """PUT /api/documents/move-copy"""

    def test_move_to_new_folder(self, client, create_document, coach_headers):
        doc = create_document("a.pdf", "A")

        response = client.put(
            "/api/documents/move-copy",
            json=[{"file": {"id": doc["id"]}, "actionType": "Move", "destinationFolder": "B"}],
            headers=coach_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["data"] == [
            {"id": doc["id"], "action": "Moved", "destination": "B", "sourceId": None}
        ]
        assert body["failed"] == []
        assert folder_members(client, "A") == []
        assert folder_members(client, "B") == [doc["id"]]
        assert client.get(f"/api/documents/{doc['id']}").json()["data"]["folder"] == "B"

    def test_copy_creates_new_document(self, client, create_document, coach_headers):
        doc = create_document("a.pdf", "A", tags=["finance"])

        response = client.put(
            "/api/documents/move-copy",
            json=[{"file": {"id": doc["id"]}, "actionType": "Copy", "destinationFolder": "B"}],
            headers=coach_headers,
        )

        result = response.json()["data"][0]
        assert result["action"] == "Copied"
        assert result["sourceId"] == doc["id"]
        assert "source_id" not in result
        assert result["id"] != doc["id"]

        copy = client.get(f"/api/documents/{result['id']}").json()["data"]
        assert copy["copied_from"] == doc["id"]
        assert copy["folder"] == "B"
        assert copy["tags"] == ["finance"]
        assert copy["public_id"] == doc["public_id"]

        assert folder_members(client, "A") == [doc["id"]]
        assert folder_members(client, "B") == [result["id"]]
        assert client.get(f"/api/documents/{doc['id']}").json()["data"]["folder"] == "A"

    def test_deleting_a_copy_keeps_shared_file(self, client, create_document, coach_headers, mock_storage):
        doc = create_document("a.pdf", "A")
        copied = client.put(
            "/api/documents/move-copy",
            json=[{"file": {"id": doc["id"]}, "actionType": "Copy", "destinationFolder": "B"}],
            headers=coach_headers,
        ).json()["data"][0]

        client.delete(f"/api/documents/{copied['id']}", headers=coach_headers)
        assert mock_storage.call_args[0][0] == []

        client.delete(f"/api/documents/{doc['id']}", headers=coach_headers)
        assert mock_storage.call_args[0][0] == [{"public_id": "docs/a.pdf", "resource_type": None}]

    def test_mixed_batch_reports_failures_and_counts(self, client, create_document, coach_headers, db_session):
        a = create_document("a.pdf", "A")
        b = create_document("b.pdf", "A")

        response = client.put(
            "/api/documents/move-copy",
            json=[
                {"file": {"id": a["id"]}, "actionType": "Move", "destinationFolder": "B"},
                {"file": {"id": 999}, "actionType": "Move", "destinationFolder": "B"},
                {"file": {"_id": b["id"]}, "actionType": "Copy", "destinationFolder": "C"},
            ],
            headers=coach_headers,
        )

        body = response.json()
        assert [r["action"] for r in body["data"]] == ["Moved", "Copied"]
        assert body["failed"] == [{"id": 999, "error": "Document not found"}]

        log = db_session.query(AuditLog).filter(AuditLog.title.like("Documents move/copy%")).first()
        assert log.meta["counts"] == {"Moved": 1, "Copied": 1}
        assert log.description == "1 moved, 1 copied, 1 failed"

    def test_empty_batch_is_bad_request(self, client, coach_headers):
        response = client.put("/api/documents/move-copy", json=[], headers=coach_headers)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "No operations provided"

    def test_unknown_action_is_rejected(self, client, create_document, coach_headers):
        doc = create_document("a.pdf", "A")

        response = client.put(
            "/api/documents/move-copy",
            json=[{"file": {"id": doc["id"]}, "actionType": "Link", "destinationFolder": "B"}],
            headers=coach_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert folder_members(client, "B") is None


class TestFolderDocumentScenario:
    """Folder rename flows through to documents end to end"""

    def test_reports_rename(self, client, coach_headers):
        created = client.post("/api/folders", json={"name": "Reports"}, headers=coach_headers)
        assert created.status_code == status.HTTP_201_CREATED
        folder_id = created.json()["data"]["id"]

        doc = client.post(
            "/api/documents",
            json={"name": "Q1.pdf", "original_filename": "Q1.pdf", "format": "pdf", "folder": "Reports"},
            headers=coach_headers,
        )
        assert doc.status_code == status.HTTP_201_CREATED
        doc_id = doc.json()["data"]["id"]
        assert folder_members(client, "Reports") == [doc_id]

        renamed = client.put(f"/api/folders/{folder_id}", json={"name": "Reports-2024"}, headers=coach_headers)
        assert renamed.status_code == status.HTTP_200_OK

        fetched = client.get(f"/api/documents/{doc_id}")
        assert fetched.json()["data"]["folder"] == "Reports-2024"
        assert folder_members(client, "Reports") is None
        assert folder_members(client, "Reports-2024") == [doc_id]
