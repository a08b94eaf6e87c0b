# SQLAlchemy模型定义（外部成绩库中本服务读取的字段）
from sqlalchemy import Column, Integer, String, Date, Text, Float, ForeignKey
from sqlalchemy.orm import relationship

from .connection import Base


class Subject(Base):
    """科目模型"""
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, index=True)
    subject_name = Column(String(100), nullable=False)


class Course(Base):
    """班级模型"""
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    grade = Column(String(10), nullable=False)      # 年级 "1" - "9"
    section = Column(String(10))
    school_year = Column(String(20))


class Grade(Base):
    """成绩模型"""
    __tablename__ = "grades"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"))
    course_id = Column(Integer, ForeignKey("courses.id"), index=True)
    grade = Column(Float)
    grade_date = Column(String(10))                 # "MM/YY"
    semester = Column(String(50))                   # '1' / '2' 或本地化学期名称
    grade_comment = Column(Text)

    subject = relationship("Subject")


class Attendance(Base):
    """考勤模型"""
    __tablename__ = "attendances"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), index=True)
    attendance_date = Column(Date, nullable=False)
    session = Column(String(10))
    status = Column(String(20))
