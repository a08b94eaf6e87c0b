# 班级排名服务
import logging
from typing import Dict, Any, List, Optional

from ..calculation.calculators.attendance_calculator import apply_attendance_penalty

logger = logging.getLogger(__name__)

# 平均分差值小于该值视为并列
TIE_TOLERANCE = 0.01


def _value(item: Dict[str, Any], key: str) -> float:
    value = item.get(key)
    return float(value) if value is not None else 0.0


def assign_ranks(sorted_values: List[float]) -> List[int]:
    """为已降序排列的数值分配排名，并列共享名次（1, 1, 3 ...）"""
    ranks = []
    for index, value in enumerate(sorted_values):
        if index > 0 and abs(value - sorted_values[index - 1]) < TIE_TOLERANCE:
            ranks.append(ranks[-1])
        else:
            ranks.append(index + 1)
    return ranks


def rank_students(students: List[Dict[str, Any]], key: str = 'average',
                  rank_field: str = 'rank') -> List[Dict[str, Any]]:
    """
    按指定字段降序排名

    Args:
        students: 学生结果列表，每项为字典
        key: 排名依据字段，缺失按0处理
        rank_field: 写入排名的字段名

    Returns:
        按排名排序的新列表（原字典被复制）
    """
    ordered = sorted(
        (dict(student) for student in students),
        key=lambda student: _value(student, key),
        reverse=True
    )
    ranks = assign_ranks([_value(student, key) for student in ordered])
    for student, rank in zip(ordered, ranks):
        student[rank_field] = rank
    return ordered


def rank_map(students: List[Dict[str, Any]], key: str) -> Dict[Any, int]:
    """返回 {student_id: 名次}"""
    return {
        student.get('student_id'): student['rank']
        for student in rank_students(students, key)
    }


def rank_subjects(students: List[Dict[str, Any]],
                  absences: Optional[Dict[Any, float]] = None) -> Dict[str, Dict[Any, int]]:
    """
    计算各科目排名

    Args:
        students: 学生结果列表，每项包含 student_id 和 subjects 明细
        absences: {student_id: 折算缺勤次数}，提供时按考勤扣分后的分数排名

    Returns:
        {科目名称: {student_id: 名次}}
    """
    absences = absences or {}
    subject_scores: Dict[str, List[Dict[str, Any]]] = {}

    for student in students:
        student_id = student.get('student_id')
        for subject in student.get('subjects') or []:
            score = float(subject.get('score') or 0)
            if student_id in absences:
                score = apply_attendance_penalty(score, absences[student_id])
            subject_scores.setdefault(subject.get('subject_name'), []).append({
                'student_id': student_id,
                'score': score,
            })

    rankings = {}
    for subject_name, entries in subject_scores.items():
        rankings[subject_name] = rank_map(entries, 'score')

    logger.debug(f"已计算 {len(rankings)} 个科目的排名")
    return rankings
