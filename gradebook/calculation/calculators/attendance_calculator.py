# 考勤统计与考勤扣分
import logging
from datetime import date
from types import MappingProxyType
from typing import Dict, Any, Iterable, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

# FULL 覆盖上午和下午两个时段
SESSION_WEIGHTS = MappingProxyType({
    'AM': 1,
    'PM': 1,
    'FULL': 2,
})

TRACKED_STATUSES = ('absent', 'late', 'excused')

EXCUSED_WEIGHT = 0.5
ABSENCES_PER_FULL_PENALTY = 4
MAX_PENALTY_RATE = 0.1


def _get(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def attendance_summary(records: Iterable[Any]) -> Dict[str, float]:
    """
    按时段加权统计考勤

    Returns:
        absent / late / excused / total 加权次数，rate 为迟到占比(%)
    """
    counts = {status: 0 for status in TRACKED_STATUSES}
    total = 0

    for record in records or []:
        session = _get(record, 'session')
        weight = SESSION_WEIGHTS.get(str(session).upper() if session else '', 1)
        status = _get(record, 'status')
        status = str(status).lower() if status else ''
        if status in counts:
            counts[status] += weight
        total += weight

    return {
        'absent': counts['absent'],
        'late': counts['late'],
        'excused': counts['excused'],
        'total': total,
        'rate': counts['late'] / total * 100 if total > 0 else 0.0,
    }


def weighted_absences(summary: Mapping[str, float]) -> float:
    """缺勤折算：请假按0.5次，旷课按1次"""
    return summary.get('excused', 0) * EXCUSED_WEIGHT + summary.get('absent', 0)


def penalty_rate(absences: float) -> float:
    """每4次缺勤扣10%，最多扣10%"""
    if not absences or absences <= 0:
        return 0.0
    return min(absences / ABSENCES_PER_FULL_PENALTY, 1) * MAX_PENALTY_RATE


def apply_attendance_penalty(average: float, absences: float) -> float:
    """按缺勤次数调整平均分"""
    return average * (1 - penalty_rate(absences))


def _month_of(value: Any) -> Optional[Tuple[int, int]]:
    """考勤日期转为 (年, 月)，接受 date/datetime 或 ISO 日期字符串"""
    if isinstance(value, date):
        return value.year, value.month
    if isinstance(value, str):
        try:
            parsed = date.fromisoformat(value.strip()[:10])
        except ValueError:
            logger.warning(f"无法解析的考勤日期: {value!r}")
            return None
        return parsed.year, parsed.month
    return None


def monthly_absences(records: Iterable[Any]) -> Dict[Tuple[int, int], float]:
    """按 (年, 月) 汇总折算缺勤次数，没有日期的考勤记录不计入"""
    by_month: Dict[Tuple[int, int], list] = {}
    for record in records or []:
        key = _month_of(_get(record, 'attendance_date'))
        if key is not None:
            by_month.setdefault(key, []).append(record)
    return {key: weighted_absences(attendance_summary(items)) for key, items in by_month.items()}
