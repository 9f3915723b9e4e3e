"""Tests for the document service."""

import hashlib
import logging
import uuid

import pytest

from files_core.exceptions import EntityNotFound, OwnerNotFound, ValidationFailed
from files_core.models.schemas import DocumentCreate, DocumentFilters, DocumentUpdate, FilePayload


def _payload(name="notes.txt", data=b"some notes", mime_type="text/plain"):
    return FilePayload(name=name, data=data, mime_type=mime_type)


@pytest.fixture
def make_document(container, alice):
    async def _make(name="Notes", owner=None, **kwargs):
        kwargs.setdefault("file", _payload())
        return await container.documents.create(
            DocumentCreate(name=name, owner_id=(owner or alice).id, **kwargs)
        )

    return _make


class TestCreate:
    async def test_create_with_inline_file(self, container, alice, object_store):
        document = await container.documents.create(
            DocumentCreate(
                name="Meeting notes",
                owner_email="alice@example.com",
                tags="work, meeting ,,work",
                file=_payload(),
            )
        )

        assert document.owner_id == alice.id
        assert document.type == "text"
        assert document.tags == "work,meeting"
        assert document.size == len(b"some notes")
        assert document.content_hash == hashlib.sha256(b"some notes").hexdigest()
        assert object_store.objects[document.file_ref]["data"] == b"some notes"

    async def test_create_from_file_path(self, container, alice, tmp_path):
        path = tmp_path / "slides.pptx"
        path.write_bytes(b"PK slides")

        document = await container.documents.create(
            DocumentCreate(name="Slides", owner_id=alice.id, file_path=str(path))
        )
        assert document.type == "presentation"
        assert document.file_ref == "slides.pptx"

    async def test_explicit_type_and_category(self, make_document):
        document = await make_document(type="contract", category="legal")
        assert document.type == "contract"
        assert document.category == "legal"

    async def test_unknown_owner_email(self, container):
        with pytest.raises(OwnerNotFound):
            await container.documents.create(
                DocumentCreate(name="x", owner_email="nobody@example.com", file=_payload())
            )

    async def test_owner_required(self, container):
        with pytest.raises(ValidationFailed):
            await container.documents.create(DocumentCreate(name="x", file=_payload()))

    async def test_payload_required(self, container, alice, object_store):
        with pytest.raises(ValidationFailed):
            await container.documents.create(DocumentCreate(name="x", owner_id=alice.id))
        assert object_store.objects == {}

    async def test_upload_into_folder_mirror(self, container, alice, make_document):
        folder = await container.folders.create(alice.id, "Reports", mirror_remote=True)
        document = await make_document(folder_id=folder.id)
        assert document.folder_id == folder.id
        assert document.file_ref == "Reports/notes.txt"

    async def test_failed_save_removes_upload(self, container, alice, object_store):
        factory = container.documents._session_factory

        def failing_after_upload():
            if object_store.objects:
                raise RuntimeError("database unavailable")
            return factory()

        container.documents._session_factory = failing_after_upload
        with pytest.raises(RuntimeError):
            await container.documents.create(DocumentCreate(name="Notes", owner_id=alice.id, file=_payload()))

        assert object_store.objects == {}

    async def test_create_logs_once(self, container, make_document):
        document = await make_document()
        logs = await container.activity.get_document_logs(document.id)
        assert [log.action for log in logs] == ["DOCUMENT_CREATE"]


class TestQueries:
    async def test_get_by_name_and_owner(self, container, make_document, bob):
        mine = await make_document(name="Shared name")
        await make_document(name="Shared name", owner=bob)

        found = await container.documents.get_by_name_and_owner("Shared name", "alice@example.com")
        assert found.id == mine.id
        assert await container.documents.get_by_name_and_owner("Other", "alice@example.com") is None

    async def test_tag_and_search_wildcards_match_literally(self, container, make_document):
        await make_document(name="Underscore", tags="a_b", file=_payload("u.txt", b"u"))
        await make_document(name="Lookalike", tags="axb", file=_payload("l.txt", b"l"))
        await make_document(name="100% done", file=_payload("p.txt", b"p"))
        await make_document(name="1000 done", file=_payload("q.txt", b"q"))

        by_tag = await container.documents.list(filters=DocumentFilters(tags=["a_b"]))
        assert [d.name for d in by_tag] == ["Underscore"]

        by_search = await container.documents.list(filters=DocumentFilters(search="100%"))
        assert [d.name for d in by_search] == ["100% done"]

    async def test_list_filters(self, container, alice, bob, make_document):
        await make_document(name="Budget 2024", tags="finance,yearly", file=_payload("b.csv", b"1,2"))
        await make_document(name="Holiday", description="photos from the beach", file=_payload("h.jpg", b"jpg"))
        await make_document(name="Bob notes", owner=bob, tags="finances", file=_payload("n.txt", b"bob"))

        by_type = await container.documents.list(filters=DocumentFilters(type="spreadsheet"))
        assert [d.name for d in by_type] == ["Budget 2024"]

        by_tag = await container.documents.list(filters=DocumentFilters(tags=["finance"]))
        assert [d.name for d in by_tag] == ["Budget 2024"]

        by_search = await container.documents.list(filters=DocumentFilters(search="BEACH"))
        assert [d.name for d in by_search] == ["Holiday"]

        for_bob = await container.documents.list_for_owner(bob.id)
        assert [d.name for d in for_bob] == ["Bob notes"]

        page = await container.documents.list(skip=1, take=1)
        assert len(page) == 1

    async def test_favorites(self, container, alice, make_document):
        document = await make_document()
        await make_document(name="Other", file=_payload("o.txt", b"other"))

        toggled = await container.documents.toggle_favorite(document.id, alice.id)
        assert toggled.is_favorite

        favorites = await container.documents.list_favorites(alice.id)
        assert [d.id for d in favorites] == [document.id]

        toggled = await container.documents.toggle_favorite(document.id, alice.id)
        assert not toggled.is_favorite

        actions = [log.action for log in await container.activity.get_document_logs(document.id)]
        assert "DOCUMENT_FAVORITE" in actions and "DOCUMENT_UNFAVORITE" in actions

    async def test_stats_and_tags(self, container, make_document):
        await make_document(name="A", tags="x,y", file=_payload("a.txt", b"aaaa"))
        await make_document(name="B", tags="x", file=_payload("b.txt", b"bb"))
        await make_document(name="C", file=_payload("c.pdf", b"%PDF"))

        stats = await container.documents.stats()
        assert stats["total_documents"] == 3
        assert stats["total_size"] == 10
        assert stats["by_type"]["text"] == {"count": 2, "size": 6}
        assert stats["by_type"]["pdf"] == {"count": 1, "size": 4}

        assert await container.documents.tag_counts() == [("x", 2), ("y", 1)]


class TestUpdate:
    async def test_partial_update(self, container, alice, make_document):
        document = await make_document(tags="a")
        updated = await container.documents.update(
            document.id, DocumentUpdate(description="new text", tags=["b", " c "]), alice.id
        )
        assert updated.description == "new text"
        assert updated.tags == "b,c"
        assert updated.name == "Notes"

        logs = await container.activity.get_logs_by_action("DOCUMENT_UPDATE")
        assert "description" in logs[0].details and "tags" in logs[0].details

    @pytest.mark.parametrize("changes", [{"name": None}, {"type": None}, {"name": ""}])
    async def test_required_fields_cannot_be_cleared(self, container, alice, make_document, changes):
        document = await make_document()
        with pytest.raises(ValidationFailed):
            await container.documents.update(document.id, DocumentUpdate.model_validate(changes), alice.id)

        unchanged = await container.documents.get(document.id)
        assert unchanged.name == "Notes"
        assert unchanged.type == "text"

    async def test_null_description_clears_it(self, container, alice, make_document):
        document = await make_document(description="draft")
        updated = await container.documents.update(
            document.id, DocumentUpdate.model_validate({"description": None}), alice.id
        )
        assert updated.description is None

    async def test_update_missing_document(self, container, alice):
        with pytest.raises(EntityNotFound):
            await container.documents.update(uuid.uuid4(), DocumentUpdate(name="x"), alice.id)

    async def test_move_between_folders(self, container, alice, make_document):
        folder = await container.folders.create(alice.id, "Archive")
        document = await make_document()

        moved = await container.documents.move_to_folder(document.id, folder.id, alice.id)
        assert moved.folder_id == folder.id

        back = await container.documents.move_to_folder(document.id, None, alice.id)
        assert back.folder_id is None

    async def test_move_to_someone_elses_folder(self, container, alice, bob, make_document):
        folder = await container.folders.create(bob.id, "Private")
        document = await make_document()
        with pytest.raises(EntityNotFound):
            await container.documents.move_to_folder(document.id, folder.id, alice.id)


class TestDownload:
    async def test_download(self, container, alice, make_document):
        document = await make_document(file=_payload("report.pdf", b"%PDF-data", "application/pdf"))
        downloaded = await container.documents.download(document.id, alice.id)
        assert downloaded.data == b"%PDF-data"
        assert downloaded.filename == "Notes"

        logs = await container.activity.get_logs_by_action("DOCUMENT_DOWNLOAD")
        assert len(logs) == 1

    async def test_url(self, container, alice, make_document):
        document = await make_document()
        result = await container.documents.get_url(document.id, alice.id)
        assert result["url"].startswith("https://storage.test/")
        assert result["expires_in"] == 3600


    async def test_same_file_name_keeps_separate_contents(self, container, alice, bob, make_document):
        alices = await make_document(file=_payload("notes.txt", b"alice secret"))
        bobs = await make_document(owner=bob, file=_payload("notes.txt", b"bob data"))

        assert alices.file_ref != bobs.file_ref
        assert (await container.documents.download(alices.id, alice.id)).data == b"alice secret"
        assert (await container.documents.download(bobs.id, bob.id)).data == b"bob data"

        await container.documents.delete(bobs.id, bob.id)
        assert (await container.documents.download(alices.id, alice.id)).data == b"alice secret"

    async def test_uses_the_owners_credentials(self, container, connector, alice, bob, make_document):
        await container.credentials.upsert(alice.id, "alice-key", "alice-secret")
        document = await make_document()

        await container.documents.download(document.id, bob.id)
        await container.documents.get_url(document.id, bob.id)
        await container.documents.delete(document.id, bob.id)

        assert [c.email for c in connector.opened] == ["alice-key"]
        logs = await container.activity.get_logs_by_action("DOCUMENT_DOWNLOAD")
        assert {log.user_id for log in logs} == {bob.id}


class TestDelete:
    async def test_delete_removes_remote_file_and_record(self, container, alice, make_document, object_store):
        document = await make_document()
        await container.documents.delete(document.id, alice.id)

        assert await container.documents.get(document.id) is None
        assert document.file_ref not in object_store.objects

    async def test_delete_when_remote_file_is_gone(self, container, alice, make_document, object_store, caplog):
        document = await make_document()
        object_store.objects.clear()

        with caplog.at_level(logging.WARNING, logger="files_core.services.documents"):
            await container.documents.delete(document.id, alice.id)

        assert await container.documents.get(document.id) is None
        assert "Could not delete remote file" in caplog.text

    async def test_delete_logs_survive(self, container, alice, make_document):
        document = await make_document()
        await container.documents.delete(document.id, alice.id)

        logs = await container.activity.get_document_logs(document.id)
        actions = [log.action for log in logs]
        assert "DOCUMENT_DELETE" in actions
        deleted = next(log for log in logs if log.action == "DOCUMENT_DELETE")
        assert deleted.document_id is None
        assert deleted.entity_id == str(document.id)
        assert "Notes" in deleted.details

    async def test_delete_missing(self, container, alice):
        with pytest.raises(EntityNotFound):
            await container.documents.delete(uuid.uuid4(), alice.id)
