# tests/test_timeline.py

from datetime import date, timedelta

import pytest

from apps.board import services as board_services
from apps.board import timeline
from apps.board.timeline import TimelineRange


class TestRange:
    def test_padded_around_known_dates(self):
        rng = timeline.compute_range([date(2024, 3, 20), None, date(2024, 3, 10)], padding=7)
        assert rng.start == date(2024, 3, 3)
        assert rng.end == date(2024, 3, 27)
        assert rng.total_days == 24

    def test_without_dates_covers_three_months(self):
        rng = timeline.compute_range([], today=date(2024, 1, 15), padding=7)
        assert rng.start == date(2024, 1, 1)
        assert rng.end == date(2024, 3, 31)
        assert rng.total_days == 90

    def test_single_date_still_has_width(self):
        rng = timeline.compute_range([date(2024, 6, 1)], padding=0)
        assert rng.total_days == 1
        assert rng.end > rng.start

    def test_datetimes_are_accepted(self):
        from datetime import datetime

        rng = timeline.compute_range([datetime(2024, 5, 5, 12, 0)], padding=1)
        assert rng.start == date(2024, 5, 4)


class TestPositions:
    rng = TimelineRange(date(2024, 1, 1), date(2024, 1, 11))

    def test_position_inside_range(self):
        assert timeline.position_percent(date(2024, 1, 6), self.rng) == 50.0

    def test_position_is_clamped(self):
        assert timeline.position_percent(date(2023, 12, 1), self.rng) == 0.0
        assert timeline.position_percent(date(2024, 2, 1), self.rng) == 100.0

    def test_marker_never_negative(self):
        assert timeline.marker_left(date(2024, 1, 1), self.rng, 5) == 0.0
        assert timeline.marker_left(date(2024, 1, 11), self.rng, 5) == 95.0


def test_month_headers_add_up_to_range():
    rng = TimelineRange(date(2024, 1, 20), date(2024, 3, 10))
    headers = timeline.month_headers(rng)

    assert [h['label'] for h in headers] == ['Jan 2024', 'Feb 2024', 'Mar 2024']
    assert [h['days'] for h in headers] == [12, 29, 9]
    assert sum(h['days'] for h in headers) == rng.total_days
    assert headers[0]['left'] == 0
    assert headers[1]['offset_days'] == 12


def test_week_labels():
    rng = TimelineRange(date(2024, 3, 3), date(2024, 3, 27))
    assert timeline.week_count(rng) == 4
    assert timeline.week_labels(rng) == ['W1', 'W2', 'W3', 'W4']


@pytest.mark.parametrize('months,expected', [
    (1, date(2024, 12, 1)),
    (3, date(2025, 2, 1)),
    (-11, date(2023, 12, 1)),
])
def test_add_months(months, expected):
    assert timeline.add_months(date(2024, 11, 15), months) == expected


class TestBars:
    window = (date(2024, 3, 1), date(2024, 3, 31))

    def test_clamped_to_window(self):
        left, width = timeline.bar_for(date(2024, 2, 20), date(2024, 3, 5), *self.window, min_width=1.0)
        assert left == 0
        assert width == pytest.approx(4 / 31 * 100)

    def test_outside_window(self):
        assert timeline.bar_for(date(2024, 4, 2), date(2024, 4, 9), *self.window, min_width=1.0) is None

    def test_end_before_start(self):
        assert timeline.bar_for(date(2024, 3, 10), date(2024, 3, 2), *self.window, min_width=1.0) is None

    def test_minimum_width(self):
        left, width = timeline.bar_for(date(2024, 3, 11), None, *self.window, min_width=1.0)
        assert left == pytest.approx(10 / 31 * 100)
        assert width == 1.0


@pytest.mark.django_db
class TestViews:
    def test_roadmap_progress(self, project, coordinator, today):
        milestone = board_services.create_milestone(project, {'name': 'Beta', 'due_date': today}, coordinator)
        board_services.create_task(project, {'title': 'A', 'milestone': milestone.id, 'status': 'completed'}, coordinator)
        board_services.create_task(project, {'title': 'B', 'milestone': milestone.id}, coordinator)

        roadmap = timeline.build_roadmap(project)

        assert len(roadmap) == 1
        assert roadmap[0]['total'] == 2
        assert roadmap[0]['completed'] == 1
        assert roadmap[0]['progress'] == 50

    def test_gantt_groups_unassigned_tasks_last(self, project, coordinator, today):
        milestone = board_services.create_milestone(project, {'name': 'Beta', 'due_date': today}, coordinator)
        board_services.create_task(project, {'title': 'Planned', 'milestone': milestone.id,
                                             'due_date': today + timedelta(days=3)}, coordinator)
        board_services.create_task(project, {'title': 'Loose', 'due_date': today}, coordinator)

        gantt = timeline.build_gantt(project, today=today)

        assert [row['name'] for row in gantt['rows']] == ['Beta', 'Unassigned']
        assert gantt['rows'][0]['marker'] is not None
        assert len(gantt['rows'][1]['bars']) == 1
        assert 0 <= gantt['today'] <= 100

    def test_monthly_only_shows_overlapping_tasks(self, project, coordinator, today):
        board_services.create_task(project, {'title': 'Now', 'due_date': today}, coordinator)
        board_services.create_task(project, {'title': 'Later', 'due_date': today + timedelta(days=400)}, coordinator)
        next_year = timeline.add_months(today, 24)

        current = timeline.build_monthly(project, today.year, today.month)
        future = timeline.build_monthly(project, next_year.year, next_year.month)

        assert current['task_count'] == 2
        assert future['task_count'] == 0
        assert future['groups'] == []
