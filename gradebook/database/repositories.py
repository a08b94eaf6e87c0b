# 数据仓库层
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Dict, Any
import logging

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from .models import Grade, Subject, Course, Attendance
from ..calculation.records import GradeRecord
from ..calculation.calculators.grade_calculator import GradeLevelConfig

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Repository层异常基类"""
    pass


class DataIntegrityError(RepositoryError):
    """数据完整性异常"""
    pass


class GradeDataSource(ABC):
    """报告服务使用的数据访问接口"""

    @abstractmethod
    def fetch_grades(self, course_id: Any, semester_tag: Optional[str] = None,
                     grade_date: Optional[str] = None) -> List[GradeRecord]:
        """获取班级成绩，可按学期或月份标签筛选"""
        pass

    @abstractmethod
    def fetch_attendance(self, course_id: Any, start: Optional[date] = None,
                         end: Optional[date] = None) -> List[Dict[str, Any]]:
        """获取班级考勤记录"""
        pass

    @abstractmethod
    def fetch_grade_level(self, course_id: Any) -> Optional[int]:
        """获取班级所属年级"""
        pass


class BaseRepository:
    """基础仓库类"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def _handle_db_error(self, error: Exception, operation: str) -> None:
        """统一处理数据库异常"""
        logger.error(f"Database error in {operation}: {str(error)}")
        self.db.rollback()

        if isinstance(error, IntegrityError):
            raise DataIntegrityError(f"数据完整性错误: {str(error)}") from error
        elif isinstance(error, SQLAlchemyError):
            raise RepositoryError(f"数据库操作失败: {str(error)}") from error
        else:
            raise RepositoryError(f"未知数据库错误: {str(error)}") from error


class GradeRepository(BaseRepository, GradeDataSource):
    """成绩数据仓库"""

    def fetch_grades(self, course_id: Any, semester_tag: Optional[str] = None,
                     grade_date: Optional[str] = None) -> List[GradeRecord]:
        """获取班级成绩"""
        try:
            conditions = [Grade.course_id == course_id]
            if semester_tag is not None:
                tag = GradeLevelConfig.normalize_semester_tag(semester_tag)
                accepted = {tag, GradeLevelConfig.get_semester_label(tag)}
                conditions.append(Grade.semester.in_(sorted(accepted)))
            if grade_date is not None:
                conditions.append(Grade.grade_date == grade_date)

            rows = (
                self.db.query(Grade, Subject.subject_name)
                .outerjoin(Subject, Grade.subject_id == Subject.id)
                .filter(*conditions)
                .all()
            )
        except Exception as e:
            self._handle_db_error(e, "fetch_grades")

        logger.debug(f"班级 {course_id} 读取成绩 {len(rows)} 条")
        return [self._to_record(grade, subject_name) for grade, subject_name in rows]

    def fetch_attendance(self, course_id: Any, start: Optional[date] = None,
                         end: Optional[date] = None) -> List[Dict[str, Any]]:
        """获取班级考勤记录"""
        try:
            conditions = [Attendance.course_id == course_id]
            if start is not None:
                conditions.append(Attendance.attendance_date >= start)
            if end is not None:
                conditions.append(Attendance.attendance_date <= end)

            rows = self.db.query(Attendance).filter(*conditions).all()
        except Exception as e:
            self._handle_db_error(e, "fetch_attendance")

        return [
            {
                'student_id': row.student_id,
                'attendance_date': row.attendance_date,
                'session': row.session,
                'status': row.status,
            }
            for row in rows
        ]

    def fetch_grade_level(self, course_id: Any) -> Optional[int]:
        """获取班级所属年级"""
        try:
            course = self.db.query(Course).filter(Course.id == course_id).first()
        except Exception as e:
            self._handle_db_error(e, "fetch_grade_level")

        if course is None:
            return None
        return GradeLevelConfig.normalize_grade_level(course.grade)

    @staticmethod
    def _to_record(grade: Grade, subject_name: Optional[str]) -> GradeRecord:
        return GradeRecord(
            student_id=grade.student_id,
            subject_id=grade.subject_id,
            subject_name=subject_name,
            course_id=grade.course_id,
            score=grade.grade,
            grade_date=grade.grade_date,
            semester=GradeLevelConfig.normalize_semester_tag(grade.semester),
            comment=grade.grade_comment
        )
