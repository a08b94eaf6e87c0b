# 成绩计算API请求模型
from typing import Optional, List, Dict, Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..calculation.records import parse_grade_date
from ..calculation.calculators.grade_calculator import GradeLevelConfig
from ..database.enums import AttendanceSession, AttendanceStatus, SemesterTag

Identifier = Union[int, str]


def _normalize_semester(v):
    tag = GradeLevelConfig.normalize_semester_tag(v)
    if tag not in {item.value for item in SemesterTag}:
        raise ValueError(f"学期标识必须为 1 或 2: {v}")
    return tag


class GradeRecordIn(BaseModel):
    """单条成绩记录，同时接受驼峰字段名"""
    model_config = ConfigDict(populate_by_name=True)

    student_id: Optional[Identifier] = Field(None, alias="studentId", description="学生ID")
    subject_id: Optional[Identifier] = Field(None, alias="subjectId", description="科目ID")
    subject_name: Optional[str] = Field(None, alias="subjectName", description="科目名称")
    course_id: Optional[Identifier] = Field(None, alias="courseId", description="班级ID")
    score: Optional[float] = Field(None, alias="grade", description="分数，缺失按0计")
    grade_date: Optional[str] = Field(None, alias="gradeDate", description="月份标签 MM/YY")
    semester: Optional[str] = Field(None, alias="semesterTag", description="学期标识 1 或 2")
    comment: Optional[str] = Field(None, alias="gradeComment", description="教师评语")


class AttendanceRecordIn(BaseModel):
    """单条考勤记录"""
    student_id: Identifier = Field(..., description="学生ID")
    session: AttendanceSession = Field(AttendanceSession.FULL, description="时段 AM/PM/FULL")
    status: AttendanceStatus = Field(..., description="考勤状态")
    attendance_date: Optional[str] = Field(None, description="考勤日期")


class GradeLevelRequest(BaseModel):
    """带年级参数的请求基类"""
    grade_level: int = Field(..., ge=1, le=9, description="年级 1-9")


class GroupAverageRequest(GradeLevelRequest):
    """单个时间段平均分请求"""
    records: List[GradeRecordIn] = Field(default_factory=list, description="成绩记录")
    month: Optional[str] = Field(None, description="仅计算指定月份")

    @field_validator('month')
    @classmethod
    def validate_month(cls, v):
        if v is not None and parse_grade_date(v) is None:
            raise ValueError(f"月份标签格式错误: {v}")
        return v


class SemesterAverageRequest(GradeLevelRequest):
    """学期平均分请求"""
    records: List[GradeRecordIn] = Field(default_factory=list, description="成绩记录")
    semester: str = Field(..., description="学期标识")
    semester_labels: Optional[Dict[str, str]] = Field(None, description="学期显示名称")

    @field_validator('semester')
    @classmethod
    def validate_semester(cls, v):
        return _normalize_semester(v)


class YearlyAverageRequest(GradeLevelRequest):
    """学年平均分请求"""
    records: List[GradeRecordIn] = Field(default_factory=list, description="全学年成绩记录")
    semester_labels: Optional[Dict[str, str]] = Field(None, description="学期显示名称")


class LetterGradeRequest(GradeLevelRequest):
    """分数转等级请求"""
    score: Optional[float] = Field(None, description="平均分")


class ReportRequest(GradeLevelRequest):
    """报告数据请求（成绩由调用方提供）"""
    records: List[GradeRecordIn] = Field(default_factory=list, description="成绩记录")
    course_id: Optional[Identifier] = Field(None, description="班级ID")
    month: Optional[str] = Field(None, description="月报告的月份标签")
    semester: Optional[str] = Field(None, description="学期报告的学期标识")
    attendance: Optional[List[AttendanceRecordIn]] = Field(None, description="考勤记录")
    apply_attendance_penalty: bool = Field(False, description="是否按考勤扣分后排名")
    semester_labels: Optional[Dict[str, str]] = Field(None, description="学期显示名称")

    @field_validator('semester')
    @classmethod
    def validate_semester(cls, v):
        if v is None:
            return v
        return _normalize_semester(v)

    def record_dicts(self) -> List[Dict[str, Any]]:
        return [record.model_dump() for record in self.records]

    def attendance_dicts(self) -> Optional[List[Dict[str, Any]]]:
        if self.attendance is None:
            return None
        return [item.model_dump(mode='json') for item in self.attendance]
