# 成绩报告服务：生成交给PDF渲染器的报告数据
import calendar
import logging
from datetime import date, datetime, timezone
from typing import Dict, Any, List, Optional, Mapping

import pandas as pd

from ..calculation.records import (
    RecordsInput, filter_month, parse_grade_date, records_to_frame, sort_grade_dates
)
from ..calculation.calculators.grade_calculator import (
    GradeLevelConfig,
    build_subject_summary,
    letter_grade,
    summarize_month,
)
from ..calculation.calculators.semester_calculator import (
    filter_semester,
    semester_average,
    semester_average_with_attendance,
    yearly_average,
)
from ..calculation.calculators.attendance_calculator import (
    attendance_summary,
    monthly_absences,
    weighted_absences,
    apply_attendance_penalty as penalize,
)
from ..database.enums import ReportType, SemesterTag
from ..database.repositories import GradeDataSource
from ..utils.precision import round_json
from .ranking_service import rank_students, rank_map, rank_subjects

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _student_groups(frame: pd.DataFrame) -> List[tuple]:
    """
    按学生分组，保持首次出现的顺序

    学号保持原始类型，缺少学号的记录归入 None 一组。
    """
    groups = []
    for student_id in dict.fromkeys(frame['student_id']):
        mask = pd.Series(
            [value == student_id for value in frame['student_id']],
            index=frame.index,
            dtype=bool
        )
        groups.append((student_id, frame.loc[mask]))
    return groups


def month_range(month_label: str) -> Optional[tuple]:
    """月份标签对应的起止日期"""
    key = parse_grade_date(month_label)
    if key is None:
        return None
    year, month = key
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def class_summary(students: List[Dict[str, Any]], key: str, grade_level: Any) -> Dict[str, Any]:
    """班级汇总：人数、平均、最高、最低及等级分布"""
    distribution = {grade: 0 for grade in ('A', 'B', 'C', 'D', 'E', 'F')}
    if not students:
        return {
            'student_count': 0,
            'class_average': 0.0,
            'highest': 0.0,
            'lowest': 0.0,
            'grade_distribution': distribution,
        }

    values = pd.Series([float(student.get(key) or 0) for student in students])
    for value in values:
        distribution[letter_grade(value, grade_level)] += 1

    return {
        'student_count': len(students),
        'class_average': float(values.mean()),
        'highest': float(values.max()),
        'lowest': float(values.min()),
        'grade_distribution': distribution,
    }


def build_monthly_report(records: RecordsInput, grade_level: Any, month_label: Optional[str] = None,
                         course_id: Any = None, attendance: Optional[List[Any]] = None,
                         apply_attendance_penalty: bool = False) -> Dict[str, Any]:
    """
    月报告

    每个学生: 科目明细、总分、平均分（全精度）、取整后的展示平均分、等级、名次。
    apply_attendance_penalty 为 True 时按考勤扣分后的平均分排名。
    """
    frame = records_to_frame(records)
    if month_label:
        frame = filter_month(frame, parse_grade_date(month_label))

    students = []
    absences = {}
    for student_id, group in _student_groups(frame):
        summary = summarize_month(group, grade_level)
        student = {'student_id': student_id}
        student.update(summary)
        student['letter_grade_name'] = GradeLevelConfig.LETTER_GRADE_NAMES[summary['letter_grade']]

        if attendance is not None:
            stats = attendance_summary(
                [item for item in attendance if _attendance_student(item) == student_id]
            )
            absences[student_id] = weighted_absences(stats)
            student['attendance'] = stats
            student['adjusted_average'] = (
                penalize(summary['average'], absences[student_id])
                if apply_attendance_penalty else summary['average']
            )
        students.append(student)

    rank_key = 'adjusted_average' if attendance is not None and apply_attendance_penalty else 'average'
    students = rank_students(students, rank_key)

    subject_ranks = rank_subjects(students, absences if apply_attendance_penalty else None)
    for student in students:
        for subject in student['subjects']:
            subject['rank'] = subject_ranks.get(subject['subject_name'], {}).get(student['student_id'])

    logger.info(f"月报告生成完成: 班级={course_id}, 月份={month_label}, 学生数={len(students)}")

    return {
        'report_type': ReportType.MONTHLY.value,
        'course_id': course_id,
        'grade_level': grade_level,
        'month': month_label,
        'students': students,
        'summary': class_summary(students, rank_key, grade_level),
        'generated_at': _now_iso(),
    }


def _attendance_student(item: Any) -> Any:
    if isinstance(item, Mapping):
        return item.get('student_id')
    return getattr(item, 'student_id', None)


def _student_absences(attendance: List[Any], student_id: Any) -> Dict[tuple, float]:
    return monthly_absences([item for item in attendance if _attendance_student(item) == student_id])


def _semester_result(group: pd.DataFrame, semester: Any, grade_level: Any,
                     absences: Optional[Dict[tuple, float]]):
    if absences is None:
        return semester_average(group, semester, grade_level)
    return semester_average_with_attendance(group, semester, grade_level, absences)


def build_semester_report(records: RecordsInput, grade_level: Any, semester: Any,
                          course_id: Any = None,
                          semester_labels: Optional[Mapping[str, str]] = None,
                          attendance: Optional[List[Any]] = None,
                          apply_attendance_penalty: bool = False) -> Dict[str, Any]:
    """
    学期报告

    每个学生: 末月/之前月份/学期平均分、学期等级、末月科目明细，
    以及按三个平均分分别计算的名次。
    apply_attendance_penalty 为 True 且提供考勤时，每个月按当月缺勤扣分。
    """
    frame = filter_semester(records_to_frame(records), semester)
    adjusted = apply_attendance_penalty and attendance is not None

    students = []
    for student_id, group in _student_groups(frame):
        absences = _student_absences(attendance, student_id) if adjusted else None
        result = _semester_result(group, semester, grade_level, absences)
        last_key = parse_grade_date(result.last_month_label) if result.last_month_label else None
        last_month_rows = filter_month(group, last_key)

        student = {'student_id': student_id}
        student.update(result.to_dict())
        student['subjects'] = [
            build_subject_summary(row, grade_level).to_dict() for _, row in last_month_rows.iterrows()
        ]
        student['letter_grade'] = letter_grade(result.overall, grade_level)
        student['letter_grade_name'] = GradeLevelConfig.LETTER_GRADE_NAMES[student['letter_grade']]
        students.append(student)

    last_month_ranks = rank_map(students, 'last_month')
    previous_months_ranks = rank_map(students, 'previous_months')
    students = rank_students(students, 'overall')
    for student in students:
        student['last_month_rank'] = last_month_ranks.get(student['student_id'])
        student['previous_months_rank'] = previous_months_ranks.get(student['student_id'])

    logger.info(f"学期报告生成完成: 班级={course_id}, 学期={semester}, 学生数={len(students)}")

    return {
        'report_type': ReportType.SEMESTER.value,
        'course_id': course_id,
        'grade_level': grade_level,
        'semester': GradeLevelConfig.normalize_semester_tag(semester),
        'semester_label': GradeLevelConfig.get_semester_label(semester, semester_labels),
        'attendance_adjusted': adjusted,
        'students': students,
        'summary': class_summary(students, 'overall', grade_level),
        'generated_at': _now_iso(),
    }


def build_yearly_report(records: RecordsInput, grade_level: Any, course_id: Any = None,
                        semester_labels: Optional[Mapping[str, str]] = None,
                        attendance: Optional[List[Any]] = None,
                        apply_attendance_penalty: bool = False) -> Dict[str, Any]:
    """学年报告：两个学期结果、学年平均分、等级和名次"""
    frame = records_to_frame(records)
    adjusted = apply_attendance_penalty and attendance is not None

    students = []
    for student_id, group in _student_groups(frame):
        absences = _student_absences(attendance, student_id) if adjusted else None
        semester1 = _semester_result(group, '1', grade_level, absences)
        semester2 = _semester_result(group, '2', grade_level, absences)
        overall = yearly_average(semester1, semester2)
        grade = letter_grade(overall, grade_level)

        students.append({
            'student_id': student_id,
            'semester1': semester1.to_dict(),
            'semester2': semester2.to_dict(),
            'semester1_average': semester1.overall,
            'semester2_average': semester2.overall,
            'overall': overall,
            'letter_grade': grade,
            'letter_grade_name': GradeLevelConfig.LETTER_GRADE_NAMES[grade],
        })

    semester1_ranks = rank_map(students, 'semester1_average')
    semester2_ranks = rank_map(students, 'semester2_average')
    students = rank_students(students, 'overall')
    for student in students:
        student['semester1_rank'] = semester1_ranks.get(student['student_id'])
        student['semester2_rank'] = semester2_ranks.get(student['student_id'])

    logger.info(f"学年报告生成完成: 班级={course_id}, 学生数={len(students)}")

    return {
        'report_type': ReportType.YEARLY.value,
        'course_id': course_id,
        'grade_level': grade_level,
        'semester1_label': GradeLevelConfig.get_semester_label('1', semester_labels),
        'semester2_label': GradeLevelConfig.get_semester_label('2', semester_labels),
        'attendance_adjusted': adjusted,
        'students': students,
        'summary': class_summary(students, 'overall', grade_level),
        'generated_at': _now_iso(),
    }


class ReportService:
    """成绩报告服务：读取数据 -> 计算 -> 生成报告数据"""

    def __init__(self, data_source: GradeDataSource,
                 semester_labels: Optional[Mapping[str, str]] = None):
        self.data_source = data_source
        self.semester_labels = semester_labels

    def _resolve_grade_level(self, course_id: Any, grade_level: Any) -> Any:
        if grade_level is not None:
            return grade_level
        resolved = self.data_source.fetch_grade_level(course_id)
        if resolved is None:
            raise ValueError(f"班级 {course_id} 不存在或未设置年级")
        return resolved

    def monthly_report(self, course_id: Any, month: str, grade_level: Any = None,
                       apply_attendance_penalty: bool = False) -> Dict[str, Any]:
        """班级月报告"""
        grade_level = self._resolve_grade_level(course_id, grade_level)
        records = self.data_source.fetch_grades(course_id)

        attendance = None
        if apply_attendance_penalty:
            period = month_range(month)
            if period is None:
                logger.warning(f"月份标签 {month!r} 无法解析，跳过考勤扣分")
            else:
                attendance = self.data_source.fetch_attendance(course_id, *period)

        return build_monthly_report(
            records, grade_level, month, course_id=course_id,
            attendance=attendance, apply_attendance_penalty=apply_attendance_penalty
        )

    def _attendance_for(self, course_id: Any, records: List[Any]) -> List[Any]:
        """读取成绩所覆盖月份内的考勤"""
        labels = sort_grade_dates(records_to_frame(records)['grade_date'])
        if not labels:
            return []
        start, _ = month_range(labels[0])
        _, end = month_range(labels[-1])
        return self.data_source.fetch_attendance(course_id, start, end)

    def semester_report(self, course_id: Any, semester: str, grade_level: Any = None,
                        apply_attendance_penalty: bool = False) -> Dict[str, Any]:
        """班级学期报告"""
        grade_level = self._resolve_grade_level(course_id, grade_level)
        records = self.data_source.fetch_grades(course_id, semester_tag=semester)
        attendance = self._attendance_for(course_id, records) if apply_attendance_penalty else None
        return build_semester_report(
            records, grade_level, semester, course_id=course_id, semester_labels=self.semester_labels,
            attendance=attendance, apply_attendance_penalty=apply_attendance_penalty
        )

    def yearly_report(self, course_id: Any, grade_level: Any = None,
                      apply_attendance_penalty: bool = False) -> Dict[str, Any]:
        """班级学年报告"""
        grade_level = self._resolve_grade_level(course_id, grade_level)
        records = self.data_source.fetch_grades(course_id)
        attendance = self._attendance_for(course_id, records) if apply_attendance_penalty else None
        return build_yearly_report(
            records, grade_level, course_id=course_id, semester_labels=self.semester_labels,
            attendance=attendance, apply_attendance_penalty=apply_attendance_penalty
        )

    def generate(self, report_type: str, course_id: Any, **options) -> Dict[str, Any]:
        """
        按报告类型生成报告

        Raises:
            ValueError: 报告类型未知或缺少必需参数
        """
        try:
            kind = ReportType(report_type)
        except ValueError:
            raise ValueError(f"未知的报告类型: {report_type}")

        grade_level = options.get('grade_level')
        if kind == ReportType.MONTHLY:
            if not options.get('month'):
                raise ValueError("月报告需要 month 参数")
            return self.monthly_report(
                course_id, options['month'], grade_level,
                apply_attendance_penalty=options.get('apply_attendance_penalty', False)
            )
        elif kind == ReportType.SEMESTER:
            if not options.get('semester'):
                raise ValueError("学期报告需要 semester 参数")
            if GradeLevelConfig.normalize_semester_tag(options['semester']) not in {item.value for item in SemesterTag}:
                raise ValueError(f"学期标识必须为 1 或 2: {options['semester']}")
            return self.semester_report(
                course_id, options['semester'], grade_level,
                apply_attendance_penalty=options.get('apply_attendance_penalty', False)
            )
        return self.yearly_report(
            course_id, grade_level,
            apply_attendance_penalty=options.get('apply_attendance_penalty', False)
        )


def present_report(report: Dict[str, Any]) -> Dict[str, Any]:
    """交给渲染器前统一保留两位小数"""
    return round_json(report, 2)
