# 成绩记录与月份标签处理
import math
import re
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# "MM/YY" 月份标签，同时接受一位月份和四位年份
GRADE_DATE_PATTERN = re.compile(r'^\s*(\d{1,2})\s*/\s*(\d{2}|\d{4})\s*$')

FRAME_COLUMNS = [
    'student_id', 'subject_id', 'subject_name', 'course_id',
    'score', 'grade_date', 'semester', 'comment'
]

# 外部系统(JSON)字段名 -> 内部字段名
_FIELD_ALIASES = {
    'studentId': 'student_id',
    'subjectId': 'subject_id',
    'subjectName': 'subject_name',
    'courseId': 'course_id',
    'grade': 'score',
    'gradeDate': 'grade_date',
    'semesterTag': 'semester',
    'semester_tag': 'semester',
    'gradeComment': 'comment',
}


@dataclass
class GradeRecord:
    """单条成绩记录（学生/科目/月份）"""
    student_id: Any = None
    subject_id: Any = None
    subject_name: Optional[str] = None
    course_id: Any = None
    score: Any = None
    grade_date: Optional[str] = None
    semester: Optional[str] = None
    comment: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'GradeRecord':
        """从字典构造，兼容驼峰字段名，忽略未知字段"""
        values = {}
        for key, value in data.items():
            field = _FIELD_ALIASES.get(key, key)
            if field in FRAME_COLUMNS:
                values[field] = value
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _native(value: Any) -> Any:
    """numpy 标量转为 Python 对象，NaN 转为 None"""
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


RecordsInput = Union[pd.DataFrame, Iterable[Union[GradeRecord, Mapping[str, Any]]], None]


def coerce_score(value: Any) -> float:
    """分数转为浮点数，缺失或无法解析时记为0"""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if pd.isna(number):
        return 0.0
    return number


def parse_grade_date(label: Any) -> Optional[Tuple[int, int]]:
    """
    解析月份标签为 (年, 月)

    Args:
        label: "MM/YY" 形式的标签，例如 "01/25"

    Returns:
        (year, month) 元组；无法解析时返回 None
    """
    if not isinstance(label, str):
        return None

    match = GRADE_DATE_PATTERN.match(label)
    if not match:
        logger.warning(f"无法解析的月份标签: {label!r}")
        return None

    month = int(match.group(1))
    year_text = match.group(2)
    year = int(year_text) if len(year_text) == 4 else 2000 + int(year_text)

    if not 1 <= month <= 12:
        logger.warning(f"月份超出范围: {label!r}")
        return None

    return year, month


def sort_grade_dates(labels: Iterable[Any]) -> List[str]:
    """去重并按 (年, 月) 排序月份标签，无法解析的标签被排除"""
    parsed = {}
    for label in labels:
        if label in parsed:
            continue
        key = parse_grade_date(label)
        if key is not None:
            parsed[label] = key
    return sorted(parsed, key=lambda label: parsed[label])


def records_to_frame(records: RecordsInput) -> pd.DataFrame:
    """
    将成绩记录规范化为 DataFrame

    额外生成两列:
        subject_key: 科目标识(优先 subject_id，其次 subject_name)
        month_key: 解析后的 (年, 月)，无法解析时为 None
    """
    if records is None:
        frame = pd.DataFrame(columns=FRAME_COLUMNS, dtype=object)
    elif isinstance(records, pd.DataFrame):
        frame = records.rename(columns=_FIELD_ALIASES).copy()
    else:
        rows = []
        for record in records:
            if isinstance(record, GradeRecord):
                rows.append(record.to_dict())
            else:
                rows.append(GradeRecord.from_mapping(record).to_dict())
        frame = pd.DataFrame(rows, columns=FRAME_COLUMNS, dtype=object)

    for column in FRAME_COLUMNS:
        if column not in frame.columns:
            frame[column] = None
        elif column != 'score':
            frame[column] = pd.Series(
                [_native(value) for value in frame[column]], index=frame.index, dtype=object
            )

    frame['score'] = [coerce_score(value) for value in frame['score']]
    frame['score'] = frame['score'].astype(float)
    frame['subject_key'] = [
        subject_id if subject_id is not None else subject_name
        for subject_id, subject_name in zip(frame['subject_id'], frame['subject_name'])
    ]
    frame['month_key'] = pd.Series(
        [parse_grade_date(label) for label in frame['grade_date']],
        index=frame.index,
        dtype=object
    )
    return frame


def filter_month(frame: pd.DataFrame, month_key: Optional[Tuple[int, int]]) -> pd.DataFrame:
    """筛选指定 (年, 月) 的记录"""
    mask = pd.Series(
        [month_key is not None and key == month_key for key in frame['month_key']],
        index=frame.index,
        dtype=bool
    )
    return frame.loc[mask]
