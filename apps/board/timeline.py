# apps/board/timeline.py

"""
Timeline arithmetic for the Gantt, monthly, yearly and roadmap views

Everything here works on whole days and returns percentages of the
visible window, ready to be used as CSS `left` / `width` values. The
visible window always spans at least one day, so no computation divides
by zero.
"""

import calendar
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from django.conf import settings
from django.utils import timezone


MILESTONE_MARKER_OFFSET = 5
TASK_MARKER_OFFSET = 2
TASK_MARKER_WIDTH = 4
MONTHLY_MIN_WIDTH = 1.0
YEARLY_MIN_WIDTH = 0.5

# previous and next windows must stay inside date.min and date.max
MIN_YEAR = date.min.year + 1
MAX_YEAR = date.max.year - 1


@dataclass(frozen=True)
class TimelineRange:
    """Half-open day window [start, start + total_days)"""

    start: date
    end: date

    @property
    def total_days(self) -> int:
        return max(1, (self.end - self.start).days)

    @property
    def effective_end(self) -> date:
        return self.start + timedelta(days=self.total_days)


# === DATE HELPERS ===

def as_date(value) -> Optional[date]:
    """Dates pass through; datetimes are converted in the current timezone"""
    if value is None:
        return None
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    return value


def add_months(day: date, months: int) -> date:
    """First day of the month `months` after day's month"""
    index = day.month - 1 + months
    return date(day.year + index // 12, index % 12 + 1, 1)


def last_day_of_month(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def clamp_year(year: int) -> int:
    return min(max(year, MIN_YEAR), MAX_YEAR)


# === RANGE ===

def compute_range(dates: Iterable, today: Optional[date] = None, padding: Optional[int] = None) -> TimelineRange:
    """
    Visible range for a set of milestone and task dates

    The earliest and latest dates are padded on both sides. Without any
    date the range covers the current month and the two following ones.
    """
    if padding is None:
        padding = settings.ORBIT_TIMELINE_PADDING_DAYS
    today = today or timezone.localdate()

    known = [as_date(d) for d in dates if d is not None]
    if not known:
        start = today.replace(day=1)
        end = last_day_of_month(add_months(today, 2))
        return TimelineRange(start, end)

    start = min(known) - timedelta(days=padding)
    end = max(known) + timedelta(days=padding)
    if end <= start:
        end = start + timedelta(days=1)
    return TimelineRange(start, end)


def position_percent(day, rng: TimelineRange) -> float:
    """Offset of day inside the range as a percentage clamped to [0, 100]"""
    day = as_date(day)
    value = (day - rng.start).days / rng.total_days * 100
    return min(100.0, max(0.0, value))


def month_headers(rng: TimelineRange) -> List[Dict]:
    """
    One header per calendar month touching the range

    Each header carries its start offset and length in days, clipped to
    the range; the lengths add up to total_days.
    """
    headers = []
    end = rng.effective_end
    cursor = rng.start

    while cursor < end:
        next_month = add_months(cursor, 1)
        segment_end = min(next_month, end)
        days = (segment_end - cursor).days
        headers.append({
            'label': cursor.strftime('%b %Y'),
            'offset_days': (cursor - rng.start).days,
            'days': days,
            'left': (cursor - rng.start).days / rng.total_days * 100,
            'width': days / rng.total_days * 100,
        })
        cursor = segment_end

    return headers


def week_count(rng: TimelineRange) -> int:
    return math.ceil(rng.total_days / 7)


def week_labels(rng: TimelineRange) -> List[str]:
    return [f'W{i + 1}' for i in range(week_count(rng))]


def bar_for(start, end, window_start: date, window_end: date, min_width: float) -> Optional[Tuple[float, float]]:
    """
    Left offset and width of an interval inside a window, in percent

    window_end is inclusive. The interval is clamped to the window and
    never narrower than min_width. Returns None when the interval lies
    entirely outside the window or ends before it starts.
    """
    start = as_date(start)
    end = as_date(end) if end is not None else start
    window_days = max(1, (window_end - window_start).days + 1)

    clamped_start = max(start, window_start)
    clamped_end = min(end, window_end)
    if clamped_start > clamped_end:
        return None

    left = (clamped_start - window_start).days / window_days * 100
    width = max((clamped_end - clamped_start).days / window_days * 100, min_width)
    return left, width


def marker_left(day, rng: TimelineRange, offset: float) -> float:
    """Left edge for a marker centred on day, never negative"""
    return max(0.0, position_percent(day, rng) - offset)


# === VIEW BUILDERS ===

def _task_span(task) -> Tuple[date, date]:
    start = as_date(task.created_at)
    end = task.due_date or start
    return start, end


def _group_by_milestone(milestones, tasks) -> List[Dict]:
    groups = {m.id: {'milestone': m, 'name': m.name, 'tasks': []} for m in milestones}
    unassigned = {'milestone': None, 'name': 'Unassigned', 'tasks': []}
    for task in tasks:
        groups.get(task.milestone_id, unassigned)['tasks'].append(task)

    ordered = list(groups.values())
    if unassigned['tasks']:
        ordered.append(unassigned)
    return ordered


def build_gantt(project, today: Optional[date] = None) -> Dict:
    """Project-wide Gantt chart: range, month headers, weeks and rows"""
    milestones = list(project.milestones.all())
    tasks = list(project.tasks.select_related('owner', 'milestone').all())

    rng = compute_range(
        [m.due_date for m in milestones] + [t.due_date for t in tasks],
        today=today,
    )

    rows = []
    for group in _group_by_milestone(milestones, tasks):
        milestone = group['milestone']
        marker = None
        if milestone is not None and milestone.due_date:
            marker = {
                'position': position_percent(milestone.due_date, rng),
                'left': marker_left(milestone.due_date, rng, MILESTONE_MARKER_OFFSET),
            }

        bars = []
        for task in group['tasks']:
            if not task.due_date:
                continue
            bars.append({
                'task': task,
                'left': marker_left(task.due_date, rng, TASK_MARKER_OFFSET),
                'width': TASK_MARKER_WIDTH,
            })

        rows.append({
            'name': group['name'],
            'milestone': milestone,
            'marker': marker,
            'bars': bars,
        })

    return {
        'range': rng,
        'total_days': rng.total_days,
        'months': month_headers(rng),
        'weeks': week_labels(rng),
        'today': position_percent(today or timezone.localdate(), rng),
        'rows': rows,
    }


def build_monthly(project, year: int, month: int) -> Dict:
    """Tasks of one calendar month, laid out by creation date to due date"""
    window_start = date(year, month, 1)
    window_end = last_day_of_month(window_start)
    return _build_window(project, window_start, window_end, MONTHLY_MIN_WIDTH, {
        'label': window_start.strftime('%B %Y'),
        'days': list(range(1, window_end.day + 1)),
        'previous': add_months(window_start, -1),
        'next': add_months(window_start, 1),
    })


def build_yearly(project, year: int) -> Dict:
    """Tasks and milestone markers of one calendar year"""
    window_start = date(year, 1, 1)
    window_end = date(year, 12, 31)
    window_days = (window_end - window_start).days + 1

    markers = []
    for milestone in project.milestones.filter(due_date__range=(window_start, window_end)):
        markers.append({
            'milestone': milestone,
            'position': (milestone.due_date - window_start).days / window_days * 100,
        })

    return _build_window(project, window_start, window_end, YEARLY_MIN_WIDTH, {
        'label': str(year),
        'months': [date(year, m, 1).strftime('%b') for m in range(1, 13)],
        'previous': year - 1,
        'next': year + 1,
        'milestone_markers': markers,
    })


def _build_window(project, window_start, window_end, min_width, extra) -> Dict:
    milestones = list(project.milestones.all())
    visible = []
    for task in project.tasks.select_related('owner', 'milestone'):
        start, end = _task_span(task)
        if start <= window_end and end >= window_start:
            visible.append(task)

    groups = []
    for group in _group_by_milestone(milestones, visible):
        bars = []
        for task in group['tasks']:
            start, end = _task_span(task)
            placed = bar_for(start, end, window_start, window_end, min_width)
            if placed is None:
                continue
            left, width = placed
            bars.append({'task': task, 'left': left, 'width': width})
        if bars:
            groups.append({'name': group['name'], 'milestone': group['milestone'], 'bars': bars})

    result = {
        'window_start': window_start,
        'window_end': window_end,
        'groups': groups,
        'task_count': len(visible),
    }
    result.update(extra)
    return result


def build_roadmap(project) -> List[Dict]:
    """Milestones in due-date order with their tasks and progress"""
    roadmap = []
    milestones = project.milestones.prefetch_related('tasks__owner').order_by('due_date', 'id')
    for milestone in milestones:
        tasks = list(milestone.tasks.all())
        done = sum(1 for t in tasks if t.status == 'completed')
        roadmap.append({
            'milestone': milestone,
            'tasks': tasks,
            'total': len(tasks),
            'completed': done,
            'progress': round(done / len(tasks) * 100) if tasks else 0,
        })
    return roadmap
