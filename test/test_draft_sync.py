import pytest

from applicant_portal.client.draft_sync import (
    DraftState,
    DraftSyncEngine,
    Edited,
    Loaded,
    Phase,
    RequestFailed,
    SubmitStarted,
    reduce,
)
from applicant_portal.client.transport import ClientError
from applicant_portal.errors import GateIssue, TransitionRejected, UnknownField
from applicant_portal.services.status_machine import Status

from conftest import complete_fields


def _record(status="in_progress", fields=None, consent=False, app_id=1):
    return {
        "id": app_id,
        "owner_id": "user_alice",
        "status": status,
        "fields": dict(fields or {}),
        "consent_given": consent,
        "created_at": "2026-01-01T00:00:00",
        "updated_at": "2026-01-01T00:00:00",
    }


class FakeTransport:
    """Records calls; answers from scripted queues or by echoing the request."""

    owner_id = "user_alice"

    def __init__(self, load=None):
        self.calls = []
        self.load_results = list(load or [(None, ClientError("Not found", 404))])
        self.submit_result = None
        self.save_result = None
        self.on_submit = None

    def get_application(self):
        self.calls.append(("get",))
        return self.load_results.pop(0)

    def save_application(self, fields, consent_given=None, status="in_progress"):
        self.calls.append(("save", fields, consent_given))
        if self.save_result is not None:
            return self.save_result
        return _record("in_progress", fields, bool(consent_given)), None

    def submit_application(self, fields, consent_given):
        self.calls.append(("submit", fields, consent_given))
        if self.on_submit:
            self.on_submit()
        if self.submit_result is not None:
            return self.submit_result
        return _record("submitted", fields, consent_given), None

    def confirm_attendance(self):
        self.calls.append(("confirm",))
        return _record("confirmed"), None

    def decline_attendance(self):
        self.calls.append(("decline",))
        return None, ClientError("Cannot decline_attendance an application that is confirmed", 400)


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _engine(transport=None, **kwargs) -> DraftSyncEngine:
    engine = DraftSyncEngine(transport or FakeTransport(), **kwargs)
    engine.load()
    return engine


def _fill(engine, fields=None):
    for name, value in (fields or complete_fields()).items():
        engine.edit(name, value)


# ---------------------------
# Load
# ---------------------------
def test_load_reads_exactly_once() -> None:
    transport = FakeTransport(load=[(_record("in_progress", {"full_name": "Alice"}), None)])
    engine = _engine(transport)
    engine.load()
    assert transport.calls == [("get",)]
    assert engine.state.phase == Phase.READY
    assert engine.state.fields == {"full_name": "Alice"}
    assert engine.state.status == Status.IN_PROGRESS
    assert not engine.state.dirty


def test_missing_record_initializes_an_empty_draft() -> None:
    engine = _engine()
    assert engine.state.status == Status.NOT_STARTED
    assert engine.state.fields == {}
    assert engine.state.error is None
    assert engine.state.loaded


def test_load_conflict_is_retried_once() -> None:
    transport = FakeTransport(load=[(None, ClientError("conflict", 409)), (_record("not_started"), None)])
    engine = _engine(transport)
    assert transport.calls == [("get",), ("get",)]
    assert engine.state.status == Status.NOT_STARTED
    assert engine.state.error is None


def test_load_failure_is_surfaced() -> None:
    engine = _engine(FakeTransport(load=[(None, ClientError("connection refused"))]))
    assert engine.state.error.message == "connection refused"
    assert engine.state.phase == Phase.READY


# ---------------------------
# Edits
# ---------------------------
def test_first_edit_marks_dirty_and_starts_the_application() -> None:
    engine = _engine()
    state = engine.edit("full_name", "Alice")
    assert state.fields == {"full_name": "Alice"}
    assert state.dirty
    assert state.pending == {"full_name"}
    assert state.status == Status.IN_PROGRESS


def test_edits_do_not_hit_the_server() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    _fill(engine)
    assert transport.calls == [("get",)]


def test_edit_rejects_unknown_fields() -> None:
    with pytest.raises(UnknownField):
        _engine().edit("is_admin", True)


@pytest.mark.parametrize("status", ["submitted", "accepted", "waitlisted", "confirmed"])
def test_edits_are_refused_once_locked(status) -> None:
    engine = _engine(FakeTransport(load=[(_record(status), None)]))
    with pytest.raises(TransitionRejected):
        engine.edit("full_name", "Mallory")
    with pytest.raises(TransitionRejected):
        engine.set_consent(True)


# ---------------------------
# Navigation
# ---------------------------
def test_leaving_a_clean_draft_is_allowed() -> None:
    assert _engine().request_leave() is True


def test_leaving_a_dirty_draft_needs_confirmation() -> None:
    transport = FakeTransport(load=[(_record("in_progress", {"full_name": "Alice"}), None)])
    engine = _engine(transport)
    engine.edit("full_name", "Bob")
    assert engine.request_leave() is False

    assert engine.confirm_leave(discard=False) is False
    assert engine.state.fields["full_name"] == "Bob"
    assert engine.state.dirty

    assert engine.confirm_leave(discard=True) is True
    assert engine.state.fields == {"full_name": "Alice"}
    assert not engine.state.dirty
    assert engine.request_leave() is True


# ---------------------------
# Submit
# ---------------------------
def test_local_gate_blocks_submission_without_a_request() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    engine.edit("full_name", "Alice")
    state = engine.submit(consent_given=False)
    assert ("get",) == transport.calls[-1]
    fields = {i.field for i in state.issues}
    assert {"cwid", "consent_given"} <= fields
    assert state.dirty


def test_successful_submit_adopts_the_server_record() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    _fill(engine)
    state = engine.submit(consent_given=True)
    assert transport.calls[-1] == ("submit", complete_fields(), True)
    assert state.status == Status.SUBMITTED
    assert state.phase == Phase.READY
    assert not state.dirty
    assert state.pending == frozenset()
    assert state.record["status"] == "submitted"


def test_server_status_wins_after_submit() -> None:
    transport = FakeTransport()
    transport.submit_result = (_record("accepted", complete_fields(), True), None)
    engine = _engine(transport)
    _fill(engine)
    assert engine.submit(consent_given=True).status == Status.ACCEPTED


def test_failed_submit_keeps_the_draft_for_retry() -> None:
    transport = FakeTransport()
    issues = [GateIssue("cwid", "Please enter a valid CWID.")]
    transport.submit_result = (None, ClientError("Application is not ready to submit", 400, issues))
    engine = _engine(transport)
    _fill(engine)
    state = engine.submit(consent_given=True)
    assert state.error.status_code == 400
    assert state.issues == tuple(issues)
    assert state.fields == complete_fields()
    assert state.dirty
    assert state.phase == Phase.READY

    transport.submit_result = None
    assert engine.submit().status == Status.SUBMITTED


def test_second_submit_while_in_flight_is_ignored() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    _fill(engine)
    inner = []
    transport.on_submit = lambda: inner.append(engine.submit(consent_given=True))
    engine.submit(consent_given=True)
    assert [c[0] for c in transport.calls].count("submit") == 1
    assert inner[0].submitting


def test_submitting_guard_is_reset_when_the_transport_raises() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    _fill(engine)

    def explode():
        raise RuntimeError("socket closed")

    transport.on_submit = explode
    with pytest.raises(RuntimeError):
        engine.submit(consent_given=True)
    assert not engine.state.submitting
    assert engine.state.dirty


def test_submit_is_refused_once_locked() -> None:
    engine = _engine(FakeTransport(load=[(_record("submitted"), None)]))
    with pytest.raises(TransitionRejected):
        engine.submit(consent_given=True)


# ---------------------------
# Flush / autosave
# ---------------------------
def test_flush_sends_only_pending_fields() -> None:
    transport = FakeTransport(load=[(_record("in_progress", {"full_name": "Alice"}), None)])
    engine = _engine(transport)
    engine.edit("cwid", "12345")
    engine.set_consent(True)
    assert engine.flush() is True
    assert transport.calls[-1] == ("save", {"cwid": "12345"}, True)
    assert not engine.state.dirty


def test_flush_is_a_noop_when_clean() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    assert engine.flush() is False
    assert transport.calls == [("get",)]


def test_autosave_is_off_by_default() -> None:
    clock = Clock()
    transport = FakeTransport()
    engine = _engine(transport, clock=clock)
    engine.edit("full_name", "Alice")
    clock.now = 10_000
    assert engine.maybe_autosave() is False
    assert transport.calls == [("get",)]


def test_autosave_flushes_once_the_interval_since_first_dirty_edit_passes() -> None:
    clock = Clock()
    transport = FakeTransport()
    engine = _engine(transport, autosave_interval=5, clock=clock)
    engine.edit("full_name", "Alice")
    clock.now = 3
    engine.edit("cwid", "12345")
    assert engine.maybe_autosave() is False
    clock.now = 5
    assert engine.maybe_autosave() is True
    assert transport.calls[-1][0] == "save"
    assert transport.calls[-1][1] == {"full_name": "Alice", "cwid": "12345"}
    clock.now = 100
    assert engine.maybe_autosave() is False


def test_failed_autosave_waits_another_interval() -> None:
    clock = Clock()
    transport = FakeTransport()
    transport.save_result = (None, ClientError("Service unavailable", 503))
    engine = _engine(transport, autosave_interval=5, clock=clock)
    engine.edit("full_name", "Alice")
    clock.now = 5
    assert engine.maybe_autosave() is False
    assert engine.state.dirty
    assert engine.state.error.status_code == 503
    clock.now = 9
    assert engine.maybe_autosave() is False
    assert [c[0] for c in transport.calls].count("save") == 1


# ---------------------------
# Attendance
# ---------------------------
def test_confirm_and_decline_attendance() -> None:
    engine = _engine(FakeTransport(load=[(_record("accepted"), None)]))
    assert not engine.state.finished
    assert engine.confirm_attendance().status == Status.CONFIRMED
    assert engine.state.finished
    state = engine.decline_attendance()
    assert state.status == Status.CONFIRMED
    assert state.error.status_code == 400


# ---------------------------
# Reducer
# ---------------------------
def test_reducer_has_one_phase_at_a_time() -> None:
    state = reduce(DraftState(), Loaded(_record("in_progress", {"full_name": "Alice"})))
    state = reduce(state, Edited("cwid", "12345"))
    state = reduce(state, SubmitStarted())
    assert state.phase == Phase.SUBMITTING and state.submitting
    state = reduce(state, RequestFailed(ClientError("boom", 500)))
    assert state.phase == Phase.READY and not state.submitting
    assert state.fields == {"full_name": "Alice", "cwid": "12345"}


def test_reducer_rejects_unknown_actions() -> None:
    with pytest.raises(TypeError):
        reduce(DraftState(), object())
