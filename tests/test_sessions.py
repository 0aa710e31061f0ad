from __future__ import annotations

from datetime import datetime

from conftest import DAY, at, work

from work_tracker.models import ActivityEvent
from work_tracker.sessions import group_events_by_day, reconstruct_day

APPS = ["VSCode", "Terminal"]
SITES = ["github.com"]
LATER = datetime(2024, 3, 20, 12, 0)


def reconstruct(events, now=LATER, day=DAY):
    return reconstruct_day(events, day, APPS, SITES, now=now)


class TestReconstructDay:
    def test_productive_then_unproductive(self):
        events = [
            work(9, 0, project="Website"),
            work(9, 30),
            ActivityEvent.activity(at(10, 0), "Slack", "general"),
            work(11, 0),
        ]
        report = reconstruct(events)

        assert len(report.sessions) == 1
        session = report.sessions[0]
        assert session.start == at(9)
        assert session.end == at(10)
        assert session.project == "Website"
        assert report.total_work_seconds == 3600

    def test_morning_queried_live(self):
        events = [
            work(9),
            work(9, 30),
            work(10),
            ActivityEvent.activity(at(10, 30), "Slack", "general"),
            work(11),
        ]
        now = at(11, 20)
        report = reconstruct(events, now=now)

        assert [(s.start, s.end, s.is_open) for s in report.sessions] == [
            (at(9), at(10, 30), False),
            (at(11), now, True),
        ]
        assert report.total_work_seconds == 90 * 60 + 20 * 60

    def test_afk_end_does_not_open_a_session(self):
        events = [
            work(9, 30),
            ActivityEvent.afk_start(at(10)),
            ActivityEvent.afk_end(at(10, 30)),
            work(11),
            work(11, 30),
        ]
        report = reconstruct(events)
        assert [(s.start, s.end) for s in report.sessions] == [
            (at(9, 30), at(10)),
            (at(11), at(11, 30)),
        ]

    def test_trailing_productive_sample_is_zero_length_on_past_day(self):
        events = [
            work(9),
            ActivityEvent.activity(at(10), "Slack", "general"),
            work(11),
        ]
        report = reconstruct(events)
        assert [s.start for s in report.sessions] == [at(9)]

    def test_afk_closes_session_and_resumes_on_next_sample(self):
        events = [
            work(9),
            ActivityEvent.afk_start(at(10)),
            ActivityEvent.afk_end(at(10, 30)),
            work(10, 30),
            work(11),
        ]
        report = reconstruct(events)

        assert [(s.start, s.end) for s in report.sessions] == [
            (at(9), at(10)),
            (at(10, 30), at(11)),
        ]
        assert report.total_work_seconds == 5400

    def test_empty_day(self):
        report = reconstruct([])
        assert report.sessions == []
        assert report.total_work_seconds == 0

    def test_duplicate_afk_start_is_harmless(self):
        events = [
            work(9),
            ActivityEvent.afk_start(at(10)),
            ActivityEvent.afk_start(at(10, 5)),
            ActivityEvent.afk_end(at(10, 30)),
        ]
        report = reconstruct(events)
        assert [(s.start, s.end) for s in report.sessions] == [(at(9), at(10))]

    def test_afk_end_without_start(self):
        events = [ActivityEvent.afk_end(at(8)), work(9), work(10)]
        report = reconstruct(events)
        assert [(s.start, s.end) for s in report.sessions] == [(at(9), at(10))]

    def test_samples_during_afk_are_ignored(self):
        events = [
            ActivityEvent.afk_start(at(9)),
            work(9, 10),
            ActivityEvent.afk_end(at(9, 20)),
        ]
        assert reconstruct(events).sessions == []

    def test_open_session_on_past_day_ends_at_last_event(self):
        events = [work(9), work(9, 45)]
        report = reconstruct(events)
        assert report.sessions[0].end == at(9, 45)
        assert not report.sessions[0].is_open

    def test_open_session_today_ends_now(self):
        now = at(12)
        report = reconstruct([work(9), work(9, 45)], now=now)
        assert report.sessions[0].end == now
        assert report.sessions[0].is_open
        assert report.total_work_seconds == 3 * 3600

    def test_session_open_when_afk_starts_is_not_extended(self):
        events = [work(9), ActivityEvent.afk_start(at(9, 30))]
        report = reconstruct(events, now=at(12))
        assert [(s.start, s.end) for s in report.sessions] == [(at(9), at(9, 30))]

    def test_project_is_frozen_at_session_start(self):
        events = [work(9, project="A"), work(9, 30, project="B"), work(10, project="B")]
        report = reconstruct(events)
        assert report.sessions[0].project == "A"

    def test_browser_with_productive_site(self):
        events = [
            ActivityEvent.activity(at(9), "Google Chrome", "PR - github.com"),
            ActivityEvent.activity(at(9, 20), "Google Chrome", "YouTube"),
        ]
        report = reconstruct(events)
        assert report.total_work_seconds == 20 * 60

    def test_reconstruction_is_repeatable(self):
        events = [work(9), ActivityEvent.afk_start(at(10)), work(11), work(12)]
        assert reconstruct(events) == reconstruct(events)


class TestGroupEventsByDay:
    def test_keeps_order_within_each_day(self):
        next_day = DAY.replace(day=12)
        events = [work(9), work(10), work(8, day=next_day)]
        grouped = group_events_by_day(events)
        assert [e.timestamp for e in grouped[DAY]] == [at(9), at(10)]
        assert [e.timestamp for e in grouped[next_day]] == [at(8, day=next_day)]
