from pathlib import Path

from halo.services.events import EventLogger, read_events


def test_event_logger_appends_ndjson(tmp_path: Path) -> None:
    path = tmp_path / "ws" / "events.ndjson"
    logger = EventLogger(path=path, workspace="demo")

    logger.log(event_type="placed", entity_type="lead", entity_id="lead-1", changed_fields=["tentative_date"])
    logger.log(
        event_type="contact_attempt",
        entity_type="lead",
        entity_id="lead-1",
        changed_fields=["job_status", "contact_attempt"],
    )

    events = read_events(path)
    assert [e["event_type"] for e in events] == ["placed", "contact_attempt"]
    assert events[1]["changed_fields"] == ["contact_attempt", "job_status"]
    assert events[0]["workspace"] == "demo"
    assert "ts" in events[0]


def test_disabled_logger_writes_nothing(tmp_path: Path) -> None:
    path = tmp_path / "events.ndjson"
    EventLogger(path=path, workspace="demo", enabled=False).log(
        event_type="placed", entity_type="lead", entity_id="lead-1"
    )
    assert not path.exists()
    assert read_events(path) == []
