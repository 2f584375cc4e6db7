import threading
from unittest.mock import patch

import pytest

from core.commands import orchestrator
from core.commands.orchestrator import get_engine, handle_command
from core.errors.exceptions import StorageError, UpstreamError


def body(transcript, request_id="req-1", **extra):
    return {"channel": "voice", "transcript": transcript, "requestId": request_id, **extra}


@pytest.fixture
def acme_jobs(job_db):
    engineer = job_db.add("u1", "Acme", "Engineer", stage="WISHLIST",
                          updated_at="2024-02-01T00:00:00+00:00")
    manager = job_db.add("u1", "Acme Corp", "Manager", stage="APPLIED",
                         updated_at="2024-01-01T00:00:00+00:00")
    return engineer, manager


def test_specific_command_applies_without_clarification(engine, parser, job_db, acme_jobs):
    engineer, _ = acme_jobs
    parser.responses["move acme engineer to interview"] = {
        "intent": "MOVE_STAGE", "args": {"company": "Acme", "position": "Engineer"}}

    result = engine.handle("u1", body("move acme engineer to interview"))

    assert result == {"status": "APPLIED", "effects": [{
        "type": "MOVE_STAGE", "jobId": engineer["job_id"], "from": "WISHLIST", "to": "INTERVIEW"}]}
    assert job_db.items[("u1", engineer["job_id"])]["stage"] == "INTERVIEW"


def test_ambiguous_command_asks_which_job(engine, parser, clarification_db, acme_jobs):
    engineer, manager = acme_jobs
    parser.responses["move acme to interview"] = {"intent": "MOVE_STAGE", "args": {"company": "acme"}}

    result = engine.handle("u1", body("move acme to interview"))

    assert result["status"] == "NEED_CLARIFICATION"
    assert result["question"] == "Which job?"
    assert [o["jobId"] for o in result["options"]] == [engineer["job_id"], manager["job_id"]]
    assert result["clarificationId"] == clarification_db.rows["u1"]["clarification_id"]
    assert clarification_db.rows["u1"]["args"] == {"stage": "INTERVIEW"}


def test_clarification_round_trip(engine, parser, job_db, audit_db, clarification_db, acme_jobs):
    _, manager = acme_jobs
    parser.responses["move acme to interview"] = {"intent": "MOVE_STAGE", "args": {"company": "acme"}}
    question = engine.handle("u1", body("move acme to interview"))

    result = engine.handle("u1", body("the second one", request_id="req-2",
                                      clarificationId=question["clarificationId"],
                                      choice="the second one"))

    assert result["status"] == "APPLIED"
    assert result["effects"][0]["jobId"] == manager["job_id"]
    assert result["effects"][0]["from"] == "APPLIED"
    assert job_db.items[("u1", manager["job_id"])]["stage"] == "INTERVIEW"
    assert clarification_db.rows == {}
    assert audit_db.rows[-1]["meta"]["clarificationId"] == question["clarificationId"]
    # the follow-up is resolved from the stored row, not re-parsed
    assert parser.calls == ["move acme to interview"]


def test_follow_up_without_choice_uses_transcript(engine, parser, job_db, acme_jobs):
    engineer, _ = acme_jobs
    parser.responses["move acme to interview"] = {"intent": "MOVE_STAGE", "args": {"company": "acme"}}
    question = engine.handle("u1", body("move acme to interview"))

    result = engine.handle("u1", body("first", request_id="req-2",
                                      clarificationId=question["clarificationId"]))

    assert result["effects"][0]["jobId"] == engineer["job_id"]


def test_duplicate_request_is_ignored(engine, parser, job_db, audit_db):
    job = job_db.add("u1", "Foo", "Designer")
    parser.default = {"intent": "COMMENT", "args": {"company": "Foo", "text": "called back"}}

    first = engine.handle("u1", body("note on foo: called back"))
    second = engine.handle("u1", body("note on foo: called back"))

    assert first["status"] == "APPLIED"
    assert second == {"status": "IGNORED_DUPLICATE", "requestId": "req-1"}
    assert job_db.items[("u1", job["job_id"])]["notes_count"] == 1
    assert len(audit_db.rows) == 1


def test_duplicate_with_different_payload_is_ignored(engine, parser, job_db, audit_db):
    job = job_db.add("u1", "Acme", "Engineer", stage="APPLIED")
    parser.responses["note on acme: called back"] = {
        "intent": "COMMENT", "args": {"company": "Acme", "text": "called back"}}
    parser.responses["move acme engineer to offer"] = {
        "intent": "MOVE_STAGE", "args": {"company": "Acme", "position": "Engineer"}}

    first = engine.handle("u1", body("note on acme: called back"))
    second = engine.handle("u1", body("move acme engineer to offer", channel="text", stage="offer"))

    assert first["status"] == "APPLIED"
    assert second == {"status": "IGNORED_DUPLICATE", "requestId": "req-1"}
    assert job_db.items[("u1", job["job_id"])]["stage"] == "APPLIED"
    assert [r["action"] for r in audit_db.rows] == ["COMMENT"]
    assert parser.calls == ["note on acme: called back"]


def test_empty_parse_asks_for_action(engine, job_db):
    job_db.add("u1", "Acme")
    result = engine.handle("u1", body("hmm"))
    assert result == {"status": "NEED_CLARIFICATION", "question": "What do you want to do?",
                      "options": [], "requestId": "req-1"}


def test_update_intent_is_not_acted_on(engine, parser, audit_db):
    parser.default = {"intent": "UPDATE", "args": {"company": "Acme"}}
    result = engine.handle("u1", body("update acme"))
    assert result["status"] == "NEED_CLARIFICATION"
    assert result["question"] == "Please specify the action."
    assert audit_db.rows == []


def test_missing_stage_asks_for_stage(engine, parser, clarification_db, acme_jobs):
    parser.default = {"intent": "MOVE_STAGE", "args": {"company": "Acme"}}
    result = engine.handle("u1", body("move acme somewhere"))
    assert result["status"] == "NEED_CLARIFICATION"
    assert "Which stage" in result["question"]
    assert result["options"] == []
    assert clarification_db.rows == {}


def test_stage_field_overrides_parser(engine, parser, job_db, acme_jobs):
    engineer, _ = acme_jobs
    parser.default = {"intent": "MOVE_STAGE",
                      "args": {"company": "Acme", "position": "Engineer", "stage": "applied"}}
    result = engine.handle("u1", body("move acme engineer", stage="offer"))
    assert result["effects"][0]["to"] == "OFFER"


def test_no_jobs_asks_without_options(engine, parser, clarification_db):
    parser.default = {"intent": "COMMENT", "args": {"company": "Foo", "text": "x"}}
    result = engine.handle("u1", body("note on foo"))
    assert result["status"] == "NEED_CLARIFICATION"
    assert result["options"] == []
    assert "clarificationId" not in result
    assert clarification_db.rows == {}


def test_create_uses_defaults(engine, parser, job_db):
    parser.default = {"intent": "CREATE", "args": {"company": "Initech"}}
    result = engine.handle("u1", body("add initech"))
    effect = result["effects"][0]
    assert effect["type"] == "CREATE"
    stored = job_db.items[("u1", effect["jobId"])]
    assert (stored["company"], stored["position"], stored["stage"]) == ("Initech", "Untitled", "WISHLIST")


def test_parser_failure_is_treated_as_empty(engine, parser, monkeypatch):
    def boom(transcript):
        raise UpstreamError("model unavailable")

    monkeypatch.setattr(parser, "parse", boom)
    result = engine.handle("u1", body("move acme to offer"))
    assert result["question"] == "What do you want to do?"


def test_storage_failure_releases_request(engine, parser, job_db, dedup_db, acme_jobs):
    parser.default = {"intent": "MOVE_STAGE", "args": {"company": "Acme", "position": "Engineer"}}
    job_db.fail_updates = True

    with pytest.raises(StorageError):
        engine.handle("u1", body("move acme engineer to offer"))
    assert dedup_db.rows == {}

    job_db.fail_updates = False
    result = engine.handle("u1", body("move acme engineer to offer"))
    assert result["status"] == "APPLIED"


def test_stale_clarification_reprompts(engine, job_db, acme_jobs):
    result = engine.handle("u1", body("first", clarificationId="f" * 24, choice="first"))
    assert result["status"] == "NEED_CLARIFICATION"
    assert "clarificationId" not in result
    assert len(result["options"]) == 2


def test_handle_command_uses_given_engine(engine, parser):
    result = handle_command("u1", body("hmm"), engine=engine)
    assert result["status"] == "NEED_CLARIFICATION"
    assert parser.calls == ["hmm"]


def test_blank_comment_asks_for_note_text(engine, parser, job_db, comment_db, audit_db):
    job_db.add("u1", "Foo", "Designer")
    parser.default = {"intent": "COMMENT", "args": {"company": "Foo"}}

    result = engine.handle("u1", body("   "))

    assert result == {"status": "NEED_CLARIFICATION", "question": "What should the note say?",
                      "options": [], "requestId": "req-1"}
    assert comment_db.comments == []
    assert audit_db.rows == []


def test_engine_is_built_once_per_thread(monkeypatch):
    monkeypatch.setattr(orchestrator, "_local", threading.local())
    with patch("boto3.resource"):
        main_engine = get_engine()
        assert get_engine() is main_engine

        other = {}
        worker = threading.Thread(target=lambda: other.setdefault("engine", get_engine()))
        worker.start()
        worker.join()

    assert other["engine"] is not main_engine
    assert other["engine"].repo.db is not main_engine.repo.db
