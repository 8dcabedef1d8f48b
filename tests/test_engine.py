"""Tests for optimistic moves, remote merges and sprint lifecycle."""

import asyncio
from datetime import datetime, timezone

import pytest

from tickboard.engine import (
    LOAD_FAILED,
    MOVE_FAILED,
    BoardReconciler,
    PlannerReconciler,
    open_board,
    open_planner,
)
from tickboard.errors import GatewayError
from tickboard.events import MoveConfirmed, Refresh, TicketCreated, TicketUpdated
from tickboard.model.schemes import UNSCHEDULED
from tickboard.model.scope import Scope
from tickboard.model.ticket import Sprint, SprintStatus, Ticket, TicketStatus

TODO = TicketStatus.UNSTARTED.value
DOING = TicketStatus.IN_PROGRESS.value
REVIEW = TicketStatus.IN_REVIEW.value
DONE = TicketStatus.COMPLETE.value


class Notices(list):
    def __call__(self, message, *, severity="information"):
        self.append((message, severity))

    @property
    def errors(self):
        return [m for m, s in self if s == "error"]


async def _board(gateway, sprint="s1", **kwargs):
    notices = Notices()
    rec = BoardReconciler(gateway, Scope("p1", sprint), notify=notices, **kwargs)
    await rec.load()
    return rec, notices


async def _planner(gateway, **kwargs):
    notices = Notices()
    rec = PlannerReconciler(gateway, Scope("p1"), notify=notices, **kwargs)
    await rec.load()
    return rec, notices


def _list_calls(gateway, name="list_tickets"):
    return [c for c in gateway.calls if c[0] == name]


# -- loading --


@pytest.mark.asyncio
async def test_load_board_for_sprint(gateway):
    rec, _ = await _board(gateway)
    assert rec.loaded
    assert rec.status == "idle"
    assert rec.partition.snapshot() == {TODO: ("t1",), DOING: ("t2",), REVIEW: ("t3",), DONE: ("t4",)}


@pytest.mark.asyncio
async def test_load_whole_project(gateway):
    rec, _ = await _board(gateway, sprint=None)
    assert rec.partition.bucket(TODO) == ("t1", "t5", "t6")
    assert len(rec.partition) == 7


@pytest.mark.asyncio
async def test_load_failure_raises_and_sets_error(gateway):
    gateway.fail.add("list_tickets")
    rec = BoardReconciler(gateway, Scope("p1", "s1"))
    with pytest.raises(GatewayError):
        await rec.load()
    assert rec.status == "error"
    assert not rec.loaded


@pytest.mark.asyncio
async def test_resync_failure_is_reported_not_raised(gateway):
    rec, notices = await _board(gateway)
    gateway.fail.add("list_tickets")
    await rec.resync()
    assert notices.errors == [LOAD_FAILED]
    assert rec.partition.bucket(TODO) == ("t1",)


@pytest.mark.asyncio
async def test_open_board_picks_active_sprint(gateway):
    rec = await open_board(gateway, "p1", None, False)
    assert rec.scope.sprint_id == "s1"


@pytest.mark.asyncio
async def test_open_board_without_active_sprint(gateway):
    del gateway.sprints["s1"]
    assert await open_board(gateway, "p1", None, False) is None
    rec = await open_board(gateway, "p1", None, True)
    assert rec.scope.sprint_id is None


@pytest.mark.asyncio
async def test_open_planner(gateway):
    rec = await open_planner(gateway, "p1")
    assert rec.partition.keys == ["s1", "s2", UNSCHEDULED, "s0"]
    assert [s.id for s in rec.sprints] == ["s1", "s2", "s0"]


# -- drops --


@pytest.mark.asyncio
async def test_scenario_move_to_front_of_in_progress(gateway, make_ticket):
    gateway.tickets = {
        "T1": make_ticket("T1", sprint="s1"),
        "T2": make_ticket("T2", status=TicketStatus.IN_PROGRESS, sprint="s1"),
    }
    rec, _ = await _board(gateway)
    rec.drop("T1", TODO, DOING, 0)
    assert rec.partition.bucket(DOING) == ("T1", "T2")
    assert rec.partition.bucket(TODO) == ()
    await rec.drain()
    assert rec.partition.bucket(DOING) == ("T1", "T2")


@pytest.mark.asyncio
async def test_optimistic_then_confirm(gateway):
    rec, notices = await _board(gateway)
    statuses = []
    rec.watch_status(lambda old, new: statuses.append(new))
    gateway.hold = asyncio.Event()

    moved = rec.drop("t1", TODO, DONE, 1)

    assert moved.status is TicketStatus.COMPLETE
    assert rec.partition.bucket(DONE) == ("t4", "t1")
    assert rec.in_flight == {"t1": 1}
    assert rec.status == "push"

    gateway.hold.set()
    await rec.drain()

    assert rec.in_flight == {}
    assert rec.status == "idle"
    assert rec.partition.bucket(DONE) == ("t4", "t1")
    assert gateway.mutations() == [("update_ticket_status", "t1", TicketStatus.COMPLETE)]
    assert statuses == ["push", "idle"]
    assert notices == []
    # the board does not refetch after a confirmed move
    assert len(_list_calls(gateway)) == 1


@pytest.mark.asyncio
async def test_optimistic_then_fail_reverts(gateway):
    rec, notices = await _board(gateway)
    gateway.fail.add("update_ticket_status")

    rec.drop("t1", TODO, DOING, 0)
    assert rec.partition.bucket(DOING) == ("t1", "t2")

    await rec.drain()

    assert notices.errors == [MOVE_FAILED]
    assert rec.partition.bucket(TODO) == ("t1",)
    assert rec.partition.bucket(DOING) == ("t2",)
    assert rec.partition.ticket("t1").status is TicketStatus.UNSTARTED
    assert rec.in_flight == {}
    assert len(_list_calls(gateway)) == 2


@pytest.mark.asyncio
async def test_drop_without_destination_is_noop(gateway):
    rec, notices = await _board(gateway)
    before = rec.partition.snapshot()
    assert rec.drop("t1", TODO, None) is None
    await rec.drain()
    assert rec.partition.snapshot() == before
    assert gateway.mutations() == []
    assert notices == []


@pytest.mark.asyncio
async def test_same_bucket_reorder_is_local(gateway, make_ticket):
    gateway.tickets["t8"] = make_ticket("t8", sprint="s1")
    rec, _ = await _board(gateway)
    rec.drop("t1", TODO, TODO, 1)
    await rec.drain()
    assert rec.partition.bucket(TODO) == ("t8", "t1")
    assert gateway.mutations() == []
    assert rec.status == "idle"


@pytest.mark.asyncio
async def test_stale_drop_reports_and_refreshes(gateway):
    rec, notices = await _board(gateway)
    assert rec.drop("t1", DONE, DOING, 0) is None
    assert notices.errors == [MOVE_FAILED]
    await rec.drain()
    assert len(_list_calls(gateway)) == 2
    assert rec.partition.bucket(TODO) == ("t1",)


@pytest.mark.asyncio
async def test_drop_disabled_while_searching(gateway):
    rec, _ = await _board(gateway)
    rec.set_query("login")
    assert not rec.drag_enabled
    assert rec.drop("t1", TODO, DOING, 0) is None
    assert rec.partition.bucket(TODO) == ("t1",)
    assert rec.view().count() == 1

    rec.set_query("  ")
    assert rec.drag_enabled
    assert rec.drop("t1", TODO, DOING, 0) is not None
    await rec.drain()


@pytest.mark.asyncio
async def test_completed_sprint_is_not_a_drop_target(gateway):
    rec, _ = await _planner(gateway)
    assert rec.drop("t6", UNSCHEDULED, "s0", 0) is None
    assert rec.partition.bucket(UNSCHEDULED) == ("t6",)
    assert gateway.mutations() == []


@pytest.mark.asyncio
async def test_planner_move_refetches(gateway):
    rec, notices = await _planner(gateway)
    rec.drop("t6", UNSCHEDULED, "s2", 0)
    assert rec.partition.bucket("s2") == ("t6", "t5")
    await rec.drain()
    assert gateway.mutations() == [("assign_sprint", "t6", "s2")]
    assert len(_list_calls(gateway)) == 2
    assert rec.partition.ticket("t6").sprint_id == "s2"
    assert notices == [(PlannerReconciler.MOVED, "information")]


@pytest.mark.asyncio
async def test_planner_move_to_backlog_sends_null(gateway):
    rec, _ = await _planner(gateway)
    rec.drop("t5", "s2", UNSCHEDULED, 0)
    await rec.drain()
    assert gateway.mutations() == [("assign_sprint", "t5", None)]
    assert gateway.tickets["t5"].sprint_id is None


@pytest.mark.asyncio
async def test_repeated_moves_settle_after_last(gateway):
    rec, _ = await _board(gateway)
    gateway.hold = asyncio.Event()
    rec.drop("t1", TODO, DOING, 0)
    rec.drop("t1", DOING, REVIEW, 0)
    assert rec.in_flight == {"t1": 2}
    gateway.hold.set()
    await rec.drain()
    assert rec.in_flight == {}
    assert rec.status == "idle"


# -- remote events --


@pytest.mark.asyncio
async def test_scenario_remote_update_moves_ticket(gateway, make_ticket):
    gateway.tickets = {
        "T1": make_ticket("T1", sprint="s1"),
        "T2": make_ticket("T2", status=TicketStatus.IN_PROGRESS, sprint="s1"),
    }
    rec, _ = await _board(gateway)
    await rec.handle(TicketUpdated(make_ticket("T2", status=TicketStatus.COMPLETE, sprint="s1")))
    assert rec.partition.bucket(DONE) == ("T2",)
    assert rec.partition.bucket(DOING) == ()


@pytest.mark.asyncio
async def test_remote_created_in_scope_is_added(gateway, make_ticket):
    rec, _ = await _board(gateway)
    await rec.handle(TicketCreated(make_ticket("t9", "New", sprint="s1")))
    assert rec.partition.bucket(TODO) == ("t1", "t9")


@pytest.mark.asyncio
async def test_remote_out_of_scope_is_ignored_or_removed(gateway, make_ticket):
    rec, _ = await _board(gateway)
    await rec.handle(TicketCreated(make_ticket("t9", sprint="s2")))
    assert "t9" not in rec.partition
    await rec.handle(TicketUpdated(make_ticket("t1", sprint="s2")))
    assert "t1" not in rec.partition


@pytest.mark.asyncio
async def test_remote_update_is_idempotent(gateway, make_ticket):
    rec, _ = await _board(gateway)
    event = TicketUpdated(make_ticket("t3", status=TicketStatus.COMPLETE, sprint="s1"))
    await rec.handle(event)
    once = rec.partition.snapshot()
    await rec.handle(event)
    assert rec.partition.snapshot() == once


@pytest.mark.asyncio
async def test_remote_update_during_move_last_write_wins(gateway, make_ticket):
    rec, _ = await _board(gateway)
    gateway.hold = asyncio.Event()
    rec.drop("t1", TODO, DOING, 0)

    await rec.handle(TicketUpdated(make_ticket("t1", status=TicketStatus.IN_REVIEW, sprint="s1")))
    assert rec.partition.locate("t1") == (REVIEW, 1)

    gateway.hold.set()
    await rec.drain()
    # the confirmation arrived last, so its payload wins
    assert rec.partition.locate("t1")[0] == DOING


@pytest.mark.asyncio
async def test_stale_remote_update_skipped(gateway, make_ticket):
    newer = datetime(2026, 10, 2, 10, 0, tzinfo=timezone.utc)
    older = datetime(2026, 10, 2, 9, 0, tzinfo=timezone.utc)
    gateway.tickets["t1"] = make_ticket("t1", sprint="s1", updated_at=newer)
    rec, _ = await _board(gateway)

    await rec.handle(TicketUpdated(make_ticket("t1", status=TicketStatus.COMPLETE, sprint="s1", updated_at=older)))
    assert rec.partition.locate("t1")[0] == TODO


@pytest.mark.asyncio
async def test_stale_check_can_be_disabled(gateway, make_ticket):
    newer = datetime(2026, 10, 2, 10, 0, tzinfo=timezone.utc)
    older = datetime(2026, 10, 2, 9, 0, tzinfo=timezone.utc)
    gateway.tickets["t1"] = make_ticket("t1", sprint="s1", updated_at=newer)
    rec, _ = await _board(gateway, reject_stale_events=False)

    await rec.handle(TicketUpdated(make_ticket("t1", status=TicketStatus.COMPLETE, sprint="s1", updated_at=older)))
    assert rec.partition.locate("t1")[0] == DONE


@pytest.mark.asyncio
async def test_mixed_timestamp_formats_compare(gateway):
    rec, _ = await _board(gateway)
    base = {"_id": "t1", "title": "Login page", "sprintId": "s1", "projectId": "p1"}

    await rec.handle(TicketUpdated(Ticket.from_payload(dict(base, status="Done", updatedAt="2026-10-02T09:00:00Z"))))
    await rec.handle(TicketUpdated(Ticket.from_payload(dict(base, status="In Review", updatedAt="2026-10-02T10:00:00"))))
    assert rec.partition.locate("t1")[0] == REVIEW

    await rec.handle(TicketUpdated(Ticket.from_payload(dict(base, status="Done", updatedAt="2026-10-02T08:00:00"))))
    assert rec.partition.locate("t1")[0] == REVIEW


@pytest.mark.asyncio
async def test_remote_update_in_same_bucket_goes_to_end(gateway, make_ticket):
    gateway.tickets["t8"] = make_ticket("t8", sprint="s1")
    rec, _ = await _board(gateway)
    await rec.handle(TicketUpdated(make_ticket("t1", "Login page v2", sprint="s1")))
    assert rec.partition.bucket(TODO) == ("t8", "t1")
    assert rec.partition.ticket("t1").title == "Login page v2"

@pytest.mark.asyncio
async def test_remote_unknown_sprint_requests_refresh(gateway, make_ticket):
    rec, _ = await _planner(gateway)
    await rec.handle(TicketUpdated(make_ticket("t6", sprint="s9")))
    assert "t6" not in rec.partition
    assert rec.queue.qsize() == 1
    await rec.drain()
    assert rec.partition.bucket(UNSCHEDULED) == ("t6",)


# -- scope and queue --


@pytest.mark.asyncio
async def test_results_from_old_scope_are_ignored(gateway):
    rec, _ = await _board(gateway)
    gateway.hold = asyncio.Event()
    rec.drop("t1", TODO, DOING, 0)

    await rec.set_scope(sprint_id="s2")
    assert rec.scope.generation == 1
    assert rec.partition.snapshot()[TODO] == ("t5",)

    gateway.hold.set()
    await rec.drain()
    assert "t1" not in rec.partition
    assert rec.in_flight == {}


@pytest.mark.asyncio
async def test_refresh_from_old_scope_is_ignored(gateway):
    rec, _ = await _board(gateway)
    await rec.set_scope(sprint_id="s2")
    calls = len(_list_calls(gateway))
    await rec.handle(Refresh(generation=0, reason="old"))
    assert len(_list_calls(gateway)) == calls


@pytest.mark.asyncio
async def test_refresh_still_runs_after_scope_change(gateway):
    rec, notices = await _board(gateway)
    rec.request_refresh("before switch")
    await rec.set_scope(sprint_id="s2")
    calls = len(_list_calls(gateway))

    assert rec.drop("gone", TODO, DOING, 0) is None
    await rec.drain()

    assert notices.errors == [MOVE_FAILED]
    assert len(_list_calls(gateway)) == calls + 1

@pytest.mark.asyncio
async def test_request_refresh_coalesces(gateway):
    rec, _ = await _board(gateway)
    rec.request_refresh("a")
    rec.request_refresh("b")
    assert rec.queue.qsize() == 1
    await rec.drain()
    rec.request_refresh("c")
    assert rec.queue.qsize() == 1


@pytest.mark.asyncio
async def test_run_survives_handler_errors(gateway, make_ticket, monkeypatch):
    rec, _ = await _board(gateway)
    original = rec.apply_remote
    calls = []

    def flaky(ticket):
        calls.append(ticket.id)
        if len(calls) == 1:
            raise RuntimeError("boom")
        original(ticket)

    monkeypatch.setattr(rec, "apply_remote", flaky)
    task = asyncio.create_task(rec.run())
    await rec.post(TicketUpdated(make_ticket("t1", status=TicketStatus.COMPLETE, sprint="s1")))
    await rec.post(TicketUpdated(make_ticket("t3", status=TicketStatus.COMPLETE, sprint="s1")))
    await rec.queue.join()
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    assert calls == ["t1", "t3"]
    assert rec.partition.bucket(DONE) == ("t4", "t3")


@pytest.mark.asyncio
async def test_confirmation_with_no_payload(gateway):
    rec, _ = await _board(gateway)
    rec.in_flight["t1"] = 1
    await rec.handle(MoveConfirmed("t1", DOING, rec.scope.generation, None))
    assert rec.in_flight == {}
    assert rec.partition.locate("t1")[0] == TODO


@pytest.mark.asyncio
async def test_next_active_sprint_cycles(gateway):
    gateway.sprints["s3"] = Sprint("s3", "Sprint 3", None, None, SprintStatus.ACTIVE, project_id="p1")
    rec, _ = await _board(gateway)
    assert (await rec.next_active_sprint()).id == "s3"
    await rec.set_scope(sprint_id="s3")
    assert (await rec.next_active_sprint()).id == "s1"


@pytest.mark.asyncio
async def test_next_active_sprint_none_when_alone(gateway):
    rec, _ = await _board(gateway)
    assert await rec.next_active_sprint() is None

    whole, _ = await _board(gateway, sprint=None)
    assert (await whole.next_active_sprint()).id == "s1"

# -- sprint lifecycle --


@pytest.mark.asyncio
async def test_complete_sprint_sends_unfinished_to_backlog(gateway):
    rec, notices = await _planner(gateway)
    assert await rec.complete_sprint("s1")

    assert ("Sprint completed!", "information") in notices
    assert gateway.mutations() == [("complete_sprint", "s1")]
    assert rec.scheme.sprint("s1").status is SprintStatus.COMPLETED
    assert rec.partition.keys == ["s2", UNSCHEDULED, "s0", "s1"]
    for tid in ("t1", "t2", "t3"):
        assert rec.partition.ticket(tid).sprint_id is None
    assert rec.partition.bucket(UNSCHEDULED) == ("t1", "t2", "t3", "t6")
    assert rec.partition.bucket("s1") == ("t4",)


@pytest.mark.asyncio
async def test_start_sprint(gateway):
    rec, notices = await _planner(gateway)
    assert await rec.start_sprint("s2")
    assert ("Sprint started!", "information") in notices
    assert rec.scheme.sprint("s2").status is SprintStatus.ACTIVE
    assert rec.partition.keys == ["s1", "s2", UNSCHEDULED, "s0"]


@pytest.mark.asyncio
async def test_sprint_transitions_are_forward_only(gateway):
    rec, notices = await _planner(gateway)
    assert not await rec.start_sprint("s1")
    assert not await rec.complete_sprint("s2")
    assert not await rec.start_sprint("s0")
    assert notices.errors == ["Failed to start sprint", "Failed to complete sprint", "Failed to start sprint"]
    assert gateway.mutations() == []


@pytest.mark.asyncio
async def test_sprint_action_failure(gateway):
    rec, notices = await _planner(gateway)
    gateway.fail.add("complete_sprint")
    assert not await rec.complete_sprint("s1")
    assert notices.errors == ["Failed to complete sprint"]
    assert rec.scheme.sprint("s1").status is SprintStatus.ACTIVE


@pytest.mark.asyncio
async def test_unknown_sprint(gateway):
    rec, notices = await _planner(gateway)
    assert not await rec.start_sprint("nope")
    assert notices.errors == ["Unknown sprint nope"]
