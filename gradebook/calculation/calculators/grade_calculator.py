# 年级差异化平均分与等级计算器
import logging
from dataclasses import dataclass, asdict
from types import MappingProxyType
from typing import Dict, Any, List, Optional, Mapping, Tuple

import pandas as pd

from ..engine import StatisticalStrategy
from ..records import (
    GradeRecord, RecordsInput, coerce_score, filter_month, parse_grade_date, records_to_frame
)
from ...utils.precision import round_half_up

logger = logging.getLogger(__name__)

UNKNOWN_SUBJECT = 'Unknown Subject'
SUBJECT_MAX_SCORE = 100


class GradeLevelConfig:
    """年级配置表（只读）"""

    ELEMENTARY_LEVELS = frozenset(range(1, 7))
    SECONDARY_LEVELS = frozenset(range(7, 10))

    # 7-8年级和9年级使用固定除数（课程总学分权重）
    FIXED_DIVISORS = MappingProxyType({
        7: 14,
        8: 14,
        9: 8.4,
    })

    # 从高到低排列，首个满足的阈值生效，全部不满足为 F
    LETTER_THRESHOLDS = MappingProxyType({
        'elementary': (('A', 9), ('B', 8), ('C', 7), ('D', 6), ('E', 5)),   # 满分10
        'secondary': (('A', 45), ('B', 40), ('C', 35), ('D', 30), ('E', 25)),  # 满分50
    })
    FAILING_GRADE = 'F'

    LETTER_GRADE_NAMES = MappingProxyType({
        'A': 'ល្អប្រសើរ',
        'B': 'ល្អណាស់',
        'C': 'ល្អ',
        'D': 'ល្អបង្គួរ',
        'E': 'ល្អបង្គួរ',
        'F': 'ខ្សោយ',
    })

    SEMESTER_LABELS = MappingProxyType({
        '1': 'ឆមាសទី ១',
        '2': 'ឆមាសទី ២',
    })

    @staticmethod
    def normalize_grade_level(grade_level: Any) -> Optional[int]:
        """年级转为整数，无法识别时返回 None"""
        if isinstance(grade_level, bool):
            return None
        try:
            return int(str(grade_level).strip())
        except (TypeError, ValueError):
            return None

    @classmethod
    def get_band(cls, grade_level: Any) -> str:
        """获取年级段: elementary / secondary / unknown"""
        level = cls.normalize_grade_level(grade_level)
        if level in cls.ELEMENTARY_LEVELS:
            return 'elementary'
        elif level in cls.SECONDARY_LEVELS:
            return 'secondary'
        return 'unknown'

    @classmethod
    def get_fixed_divisor(cls, grade_level: Any) -> Optional[float]:
        """固定除数；按科目数平均的年级返回 None"""
        return cls.FIXED_DIVISORS.get(cls.normalize_grade_level(grade_level))

    @classmethod
    def get_thresholds(cls, grade_level: Any) -> Tuple[Tuple[str, float], ...]:
        """获取等级阈值表，未知年级使用1-6年级标准"""
        band = cls.get_band(grade_level)
        if band == 'unknown':
            logger.warning(f"未知年级 {grade_level!r}，使用1-6年级等级标准")
            band = 'elementary'
        return cls.LETTER_THRESHOLDS[band]

    @classmethod
    def normalize_semester_tag(cls, semester: Any) -> Optional[str]:
        """学期标识统一为 '1' / '2'，同时接受本地化学期名称"""
        if semester is None or (not isinstance(semester, str) and pd.isna(semester)):
            return None
        text = str(semester).strip()
        if text in cls.SEMESTER_LABELS:
            return text
        for tag, label in cls.SEMESTER_LABELS.items():
            if text == label:
                return tag
        return text

    @classmethod
    def get_semester_label(cls, semester: Any, labels: Optional[Mapping[str, str]] = None) -> str:
        """学期显示名称，未知学期原样返回"""
        labels = labels if labels is not None else cls.SEMESTER_LABELS
        tag = cls.normalize_semester_tag(semester)
        if tag not in labels:
            logger.warning(f"未知学期标识: {semester!r}")
            return '' if tag is None else tag
        return labels[tag]


@dataclass
class SubjectSummary:
    """单科成绩展示数据"""
    subject_name: str
    score: float
    max_score: int
    percentage: float
    letter_grade: str
    comment: str
    subject_id: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def divide_total(total: float, grade_level: Any, distinct_subjects: int) -> float:
    """按年级规则将总分换算为平均分"""
    divisor = GradeLevelConfig.get_fixed_divisor(grade_level)
    if divisor is not None:
        return total / divisor
    if distinct_subjects <= 0:
        return 0.0
    return total / distinct_subjects


def count_distinct_subjects(frame: pd.DataFrame) -> int:
    if frame.empty:
        return 0
    return int(frame['subject_key'].nunique(dropna=False))


def average_for_group(records: RecordsInput, grade_level: Any) -> float:
    """
    计算同一时间段（一个月或一个学期）内成绩的平均分

    1-6年级及未知年级按出现的科目数平均，7-8年级除以14，9年级除以8.4。
    结果不做舍入。
    """
    frame = records_to_frame(records)
    total = float(frame['score'].sum()) if not frame.empty else 0.0
    return divide_total(total, grade_level, count_distinct_subjects(frame))


def letter_grade(score: Any, grade_level: Any) -> str:
    """按年级段阈值将分数划分为 A-F"""
    value = coerce_score(score)
    for grade, cutoff in GradeLevelConfig.get_thresholds(grade_level):
        if value >= cutoff:
            return grade
    return GradeLevelConfig.FAILING_GRADE


def _as_record(record: Any) -> GradeRecord:
    if isinstance(record, GradeRecord):
        return record
    if isinstance(record, pd.Series):
        return GradeRecord.from_mapping(record.to_dict())
    return GradeRecord.from_mapping(record or {})


def _text_or_default(value: Any, default: str) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)) or value == '':
        return default
    return str(value)


def build_subject_summary(record: Any, grade_level: Any) -> SubjectSummary:
    """
    生成单科展示对象

    满分固定为100，与平均分使用的年级分制无关；百分比因此在数值上等于分数。
    """
    record = _as_record(record)
    score = coerce_score(record.score)

    return SubjectSummary(
        subject_name=_text_or_default(record.subject_name, UNKNOWN_SUBJECT),
        score=score,
        max_score=SUBJECT_MAX_SCORE,
        percentage=score * 100 / SUBJECT_MAX_SCORE,
        letter_grade=letter_grade(score, grade_level),
        comment=_text_or_default(record.comment, ''),
        subject_id=None if record.subject_id is None or pd.isna(record.subject_id) else record.subject_id
    )


def summarize_month(records: RecordsInput, grade_level: Any) -> Dict[str, Any]:
    """单个学生单月汇总：科目明细、总分、平均分及等级"""
    frame = records_to_frame(records)
    subjects = [build_subject_summary(row, grade_level).to_dict() for _, row in frame.iterrows()]
    total = float(frame['score'].sum()) if not frame.empty else 0.0
    average = divide_total(total, grade_level, count_distinct_subjects(frame))

    return {
        'subjects': subjects,
        'subject_count': count_distinct_subjects(frame),
        'total_score': total,
        'average': average,
        'average_display': round_half_up(average, 0),
        'letter_grade': letter_grade(average, grade_level),
    }


class MonthlyAverageCalculator(StatisticalStrategy):
    """月平均分计算策略"""

    def calculate(self, records: List[Any], config: Dict[str, Any]) -> Dict[str, Any]:
        grade_level = config.get('grade_level')
        month = config.get('month')

        frame = records_to_frame(records)
        if month:
            frame = filter_month(frame, parse_grade_date(month))

        result = summarize_month(frame, grade_level)
        result.update({
            'grade_level': grade_level,
            'grade_band': GradeLevelConfig.get_band(grade_level),
            'month': month,
            'record_count': int(len(frame)),
        })
        return result

    def validate_input(self, records: List[Any], config: Dict[str, Any]) -> Dict[str, Any]:
        return validate_grade_input(records, config)

    def get_algorithm_info(self) -> Dict[str, str]:
        return {
            'name': 'MonthlyAverage',
            'version': '1.0',
            'description': '月平均分计算：1-6年级按科目数平均，7-8年级除以14，9年级除以8.4',
            'rounding': 'display_only_half_up_integer'
        }


def validate_grade_input(records: List[Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """各成绩策略共用的输入验证"""
    validation_result = {
        'is_valid': True,
        'errors': [],
        'warnings': [],
        'stats': {}
    }

    if 'grade_level' not in config or config.get('grade_level') in (None, ''):
        validation_result['is_valid'] = False
        validation_result['errors'].append("缺少必需参数: grade_level")
        return validation_result

    if GradeLevelConfig.get_band(config['grade_level']) == 'unknown':
        validation_result['warnings'].append(
            f"未知年级 {config['grade_level']!r}，将按1-6年级规则计算"
        )

    frame = records_to_frame(records)
    invalid_dates = int(frame['month_key'].isna().sum()) if not frame.empty else 0
    if invalid_dates > 0:
        validation_result['warnings'].append(f"发现{invalid_dates}条无法解析的月份标签")

    if frame.empty:
        validation_result['warnings'].append("成绩记录为空，结果将为0")

    validation_result['stats'] = {
        'total_records': int(len(frame)),
        'distinct_subjects': count_distinct_subjects(frame),
        'invalid_grade_dates': invalid_dates
    }
    return validation_result
