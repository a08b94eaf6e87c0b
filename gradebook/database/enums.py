# 数据库枚举定义
import enum


class SemesterTag(enum.Enum):
    """学期枚举"""
    FIRST = "1"
    SECOND = "2"


class ReportType(enum.Enum):
    """报告类型枚举"""
    MONTHLY = "monthly"
    SEMESTER = "semester"
    YEARLY = "yearly"


class AttendanceStatus(enum.Enum):
    """考勤状态枚举（只记录异常）"""
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class AttendanceSession(enum.Enum):
    """考勤时段枚举"""
    AM = "AM"
    PM = "PM"
    FULL = "FULL"
