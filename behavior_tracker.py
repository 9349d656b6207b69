"""
Aggregation over behavior entries.

Every function here is pure: it reads the collections it is given and
returns new values. Entries whose `behavior_id` does not resolve to a known
category count as neither positive nor negative and score zero.
"""
from datetime import timedelta

from models import BehaviorType, ClassSummary, WeeklyTrend, as_aware

WEEK = timedelta(days=7)


def build_category_index(categories):
    """Map category id to category."""
    return {category.id: category for category in categories}


def resolve_category(entry, categories):
    """Return the category an entry points at, or None if it is gone."""
    if isinstance(categories, dict):
        return categories.get(entry.behavior_id)
    return build_category_index(categories).get(entry.behavior_id)


def filter_entries_in_range(entries, start, end):
    """Entries with start <= timestamp <= end, in their original order. Naive bounds are read as UTC."""
    start, end = as_aware(start), as_aware(end)
    if start > end:
        return []
    return [entry for entry in entries if start <= entry.timestamp <= end]


def student_entries(entries, student_id):
    """All entries for one student, newest first."""
    matching = [entry for entry in entries if entry.student_id == student_id]
    return sorted(matching, key=lambda entry: entry.timestamp, reverse=True)


def entries_on_day(entries, day, tz):
    """Entries whose local calendar date in `tz` is `day`."""
    return [entry for entry in entries if entry.timestamp.astimezone(tz).date() == day]


def classify_by_type(entries, categories):
    """Split entries into (positive, negative) lists by their category type."""
    index = build_category_index(categories)
    positive = []
    negative = []
    for entry in entries:
        category = index.get(entry.behavior_id)
        if category is None:
            continue
        if category.type == BehaviorType.POSITIVE:
            positive.append(entry)
        elif category.type == BehaviorType.NEGATIVE:
            negative.append(entry)
    return positive, negative


def count_by_type(entries, categories):
    positive, negative = classify_by_type(entries, categories)
    return len(positive), len(negative)


def compute_score(entries, categories):
    """Net score: the sum of resolved category points."""
    index = build_category_index(categories)
    total = 0
    for entry in entries:
        category = index.get(entry.behavior_id)
        if category is not None:
            total += category.points
    return total


def compute_points_summary(entries, categories):
    """Calculate positive points, negative points and percentage for a set of entries"""
    if not entries:
        return {
            'total_positive_points': 0,
            'total_negative_points': 0,
            'net_score': 0,
            'positive_percentage': 0,
            'entries_recorded': 0
        }

    index = build_category_index(categories)
    total_positive_points = 0
    total_negative_points = 0

    for entry in entries:
        category = index.get(entry.behavior_id)
        if category is None:
            continue
        if category.points > 0:
            total_positive_points += category.points
        else:
            total_negative_points += abs(category.points)

    total_points = total_positive_points + total_negative_points
    positive_percentage = (total_positive_points / total_points * 100) if total_points > 0 else 0

    return {
        'total_positive_points': total_positive_points,
        'total_negative_points': total_negative_points,
        'net_score': total_positive_points - total_negative_points,
        'positive_percentage': round(positive_percentage, 1),
        'entries_recorded': len(entries)
    }


def compute_weekly_trends(entries, categories, date_range):
    """
    Partition the range into consecutive 7-day windows starting at
    `date_range.start` and count positive/negative entries in each.

    Windows are half-open, [window_start, window_start + 7 days), and the
    last one is clipped to the range end, which it includes. An entry that
    falls exactly on the boundary between two weeks is counted once, in the
    later week. Empty windows still produce a bucket with zero counts.
    """
    start, end = date_range.start, date_range.end
    in_range = filter_entries_in_range(entries, start, end)
    index = build_category_index(categories)

    trends = []
    window_start = start
    week = 1
    while window_start <= end:
        window_end = window_start + WEEK
        window_entries = [entry for entry in in_range
                          if window_start <= entry.timestamp < window_end]
        positive_count, negative_count = count_by_type(window_entries, index.values())
        trends.append(WeeklyTrend(week=week,
                                  positive_count=positive_count,
                                  negative_count=negative_count))
        window_start = window_end
        week += 1

    return trends


def compute_class_summary(entries, categories, date_range):
    """Totals and positive ratio for every entry in the range."""
    in_range = filter_entries_in_range(entries, date_range.start, date_range.end)
    positive_count, negative_count = count_by_type(in_range, categories)
    classified = positive_count + negative_count
    positive_ratio = (positive_count / classified * 100) if classified > 0 else 0

    return ClassSummary(total_entries=len(in_range),
                        positive_count=positive_count,
                        negative_count=negative_count,
                        positive_ratio=positive_ratio)
