"""IngestionService: one announcement per album."""
from nightpass.services.ingestion.service import IngestionService
from nightpass.services.media.service import MediaRegistry


class TestIngestionService:
    def test_album_announced_once(self, db, sink):
        service = IngestionService(MediaRegistry(db), sink)
        first = service.ingest_message("-100500", "photo", "file-a", media_group_id="G1")
        second = service.ingest_message("-100500", "video", "file-b", media_group_id="G1")
        assert first.media_hash == second.media_hash
        assert first.announced is True
        assert second.announced is False
        assert len(sink.emitted) == 1
        destination, payload, _ = sink.emitted[0]
        assert destination == "-100500"
        assert "NEW ALBUM" in payload.text
        assert f"pompom_{first.media_hash}" in payload.text

    def test_single_item_announced(self, db, sink):
        result = IngestionService(MediaRegistry(db), sink).ingest_message("-100500", "video", "file-a")
        assert result.announced is True
        assert "NEW VIDEO" in sink.texts()[0]

    def test_without_sink_nothing_sent(self, db):
        result = IngestionService(MediaRegistry(db)).ingest_message("-100500", "photo", "file-a", "G1")
        assert result.announced is False
        assert MediaRegistry(db).find_by_hash(result.media_hash) is not None


class TestForwardSubmission:
    def test_forwarded_to_owner_with_sender(self, db, sink):
        forwarded = IngestionService(MediaRegistry(db), sink).forward_submission("900", "video", "file-x", "alice")
        assert forwarded is True
        destination, payload, _ = sink.emitted[0]
        assert destination == "900"
        assert payload.kind == "video"
        assert payload.file_ref == "file-x"
        assert payload.text == "From @alice"
        assert MediaRegistry(db).count_albums() == 0

    def test_sender_without_username(self, db, sink):
        IngestionService(MediaRegistry(db), sink).forward_submission("900", "photo", "file-x", None)
        assert sink.emitted[0][1].text == "From @unknown"

    def test_send_failure_reported(self, db, sink):
        sink.fail_file_refs.add("file-x")
        assert IngestionService(MediaRegistry(db), sink).forward_submission("900", "photo", "file-x") is False
        assert sink.emitted == []
