# 学期/学年平均分计算器
import logging
from dataclasses import dataclass, asdict, field
from typing import Dict, Any, List, Mapping, Optional, Tuple, Union

import pandas as pd

from ..engine import StatisticalStrategy
from ..records import RecordsInput, filter_month, records_to_frame
from .attendance_calculator import apply_attendance_penalty
from .grade_calculator import (
    GradeLevelConfig,
    count_distinct_subjects,
    divide_total,
    letter_grade,
    validate_grade_input,
)

logger = logging.getLogger(__name__)


@dataclass
class SemesterAverage:
    """学期平均分结果"""
    last_month: float = 0.0
    previous_months: float = 0.0
    overall: float = 0.0
    last_month_label: Optional[str] = None
    previous_month_labels: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _month_labels(frame: pd.DataFrame) -> Dict[tuple, str]:
    """(年, 月) -> 首次出现的原始标签，按时间顺序排列"""
    labels = {}
    for key, label in zip(frame['month_key'], frame['grade_date']):
        if key is not None and key not in labels:
            labels[key] = label
    return {key: labels[key] for key in sorted(labels)}


def filter_semester(frame: pd.DataFrame, semester: Any) -> pd.DataFrame:
    """
    保留属于指定学期的记录

    未标注学期的记录视为调用方已筛选过，予以保留。
    """
    tag = GradeLevelConfig.normalize_semester_tag(semester)
    if tag is None or frame.empty:
        return frame

    mask = pd.Series(
        [
            record_tag is None or record_tag == tag
            for record_tag in (GradeLevelConfig.normalize_semester_tag(value) for value in frame['semester'])
        ],
        index=frame.index,
        dtype=bool
    )
    return frame.loc[mask]


def semester_average(records: RecordsInput, semester: Any, grade_level: Any) -> SemesterAverage:
    """
    计算学期平均分

    1. 按 (年, 月) 排序学期内出现的月份，最后一个月为"末月"
    2. 末月平均分 = average_for_group(末月成绩)
    3. 之前各月分别求总分，取各月总分的算术平均，再按年级规则换算；
       1-6年级的科目数沿用末月的科目数
    4. 学期平均分 = (末月平均分 + 之前月份平均分) / 2

    没有可解析月份时返回全0结果。
    """
    frame = filter_semester(records_to_frame(records), semester)
    months = _month_labels(frame)
    logger.debug(f"学期 {semester} 成绩月份: {list(months.values())}")

    if not months:
        logger.debug(f"学期 {semester} 没有可用月份，返回0")
        return SemesterAverage()

    month_keys = list(months)
    last_key = month_keys[-1]
    previous_keys = month_keys[:-1]

    last_month_frame = filter_month(frame, last_key)
    last_month_subjects = count_distinct_subjects(last_month_frame)
    last_month_average = divide_total(
        float(last_month_frame['score'].sum()), grade_level, last_month_subjects
    )

    monthly_totals = []
    for key in previous_keys:
        month_frame = filter_month(frame, key)
        if month_frame.empty:
            continue
        monthly_totals.append(float(month_frame['score'].sum()))
    logger.debug(f"学期 {semester} 之前月份总分: {monthly_totals}")

    previous_total_average = sum(monthly_totals) / len(monthly_totals) if monthly_totals else 0.0
    previous_months_average = divide_total(previous_total_average, grade_level, last_month_subjects)
    overall = (last_month_average + previous_months_average) / 2

    logger.debug(
        f"学期 {semester} 计算结果: 末月={last_month_average}, "
        f"之前月份={previous_months_average}, 学期={overall}"
    )

    return SemesterAverage(
        last_month=last_month_average,
        previous_months=previous_months_average,
        overall=overall,
        last_month_label=months[last_key],
        previous_month_labels=[months[key] for key in previous_keys]
    )


def semester_average_with_attendance(records: RecordsInput, semester: Any, grade_level: Any,
                                     absences_by_month: Mapping[Tuple[int, int], float]) -> SemesterAverage:
    """
    按月考勤扣分后的学期平均分

    每个月按当月科目数换算平均分，再按当月折算缺勤次数扣分（最多10%）；
    之前月份取扣分后各月平均分的算术平均，末月同样扣分。
    学期平均分 = (末月 + 之前月份) / 2
    """
    frame = filter_semester(records_to_frame(records), semester)
    months = _month_labels(frame)

    if not months:
        return SemesterAverage()

    adjusted = []
    for key in months:
        month_frame = filter_month(frame, key)
        average = divide_total(
            float(month_frame['score'].sum()), grade_level, count_distinct_subjects(month_frame)
        )
        adjusted.append(apply_attendance_penalty(average, absences_by_month.get(key, 0)))

    last_month_average = adjusted[-1]
    previous = adjusted[:-1]
    previous_months_average = sum(previous) / len(previous) if previous else 0.0
    overall = (last_month_average + previous_months_average) / 2

    logger.debug(
        f"学期 {semester} 考勤扣分后: 末月={last_month_average}, "
        f"之前月份={previous_months_average}, 学期={overall}"
    )

    month_keys = list(months)
    return SemesterAverage(
        last_month=last_month_average,
        previous_months=previous_months_average,
        overall=overall,
        last_month_label=months[month_keys[-1]],
        previous_month_labels=[months[key] for key in month_keys[:-1]]
    )


def _overall_of(result: Union[SemesterAverage, Dict[str, Any], float, int, None]) -> float:
    if result is None:
        return 0.0
    if isinstance(result, SemesterAverage):
        return result.overall
    if isinstance(result, dict):
        return float(result.get('overall') or 0.0)
    return float(result)


def yearly_average(semester1: Union[SemesterAverage, Dict[str, Any], float, None],
                   semester2: Union[SemesterAverage, Dict[str, Any], float, None]) -> float:
    """学年平均分 = 两个学期平均分的算术平均；无成绩的学期按0计入"""
    return (_overall_of(semester1) + _overall_of(semester2)) / 2


class SemesterAverageCalculator(StatisticalStrategy):
    """学期平均分计算策略"""

    def calculate(self, records: List[Any], config: Dict[str, Any]) -> Dict[str, Any]:
        grade_level = config.get('grade_level')
        semester = config.get('semester')

        result = semester_average(records, semester, grade_level)
        output = result.to_dict()
        output.update({
            'grade_level': grade_level,
            'semester': GradeLevelConfig.normalize_semester_tag(semester),
            'semester_label': GradeLevelConfig.get_semester_label(semester, config.get('semester_labels')),
            'letter_grade': letter_grade(result.overall, grade_level),
        })
        return output

    def validate_input(self, records: List[Any], config: Dict[str, Any]) -> Dict[str, Any]:
        validation_result = validate_grade_input(records, config)
        if not config.get('semester'):
            validation_result['is_valid'] = False
            validation_result['errors'].append("缺少必需参数: semester")
        return validation_result

    def get_algorithm_info(self) -> Dict[str, str]:
        return {
            'name': 'SemesterAverage',
            'version': '1.0',
            'description': '学期平均分：(末月平均分 + 之前各月总分均值换算后的平均分) / 2',
            'previous_months_divisor': 'last_month_subject_count'
        }


class YearlyAverageCalculator(StatisticalStrategy):
    """学年平均分计算策略"""

    def calculate(self, records: List[Any], config: Dict[str, Any]) -> Dict[str, Any]:
        grade_level = config.get('grade_level')
        labels = config.get('semester_labels')

        semester1 = semester_average(records, '1', grade_level)
        semester2 = semester_average(records, '2', grade_level)
        overall = yearly_average(semester1, semester2)

        return {
            'grade_level': grade_level,
            'semester1': semester1.to_dict(),
            'semester2': semester2.to_dict(),
            'semester1_label': GradeLevelConfig.get_semester_label('1', labels),
            'semester2_label': GradeLevelConfig.get_semester_label('2', labels),
            'overall': overall,
            'letter_grade': letter_grade(overall, grade_level),
        }

    def validate_input(self, records: List[Any], config: Dict[str, Any]) -> Dict[str, Any]:
        validation_result = validate_grade_input(records, config)
        frame = records_to_frame(records)
        untagged = int(frame['semester'].isna().sum()) if not frame.empty else 0
        if untagged > 0:
            validation_result['warnings'].append(f"发现{untagged}条未标注学期的记录，将同时计入两个学期")
        return validation_result

    def get_algorithm_info(self) -> Dict[str, str]:
        return {
            'name': 'YearlyAverage',
            'version': '1.0',
            'description': '学年平均分：两个学期平均分的算术平均，无成绩学期按0计入'
        }
