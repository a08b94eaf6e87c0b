# 成绩计算引擎模块
from .engine import CalculationEngine, StatisticalStrategy, get_calculation_engine
from .records import GradeRecord, parse_grade_date, sort_grade_dates, records_to_frame
from .calculators import (
    GradeLevelConfig,
    SemesterAverage,
    SubjectSummary,
    average_for_group,
    build_subject_summary,
    letter_grade,
    semester_average,
    yearly_average,
    register_default_strategies,
    initialize_calculation_system
)

__all__ = [
    'CalculationEngine',
    'StatisticalStrategy',
    'get_calculation_engine',
    'GradeRecord',
    'parse_grade_date',
    'sort_grade_dates',
    'records_to_frame',
    'GradeLevelConfig',
    'SemesterAverage',
    'SubjectSummary',
    'average_for_group',
    'build_subject_summary',
    'letter_grade',
    'semester_average',
    'yearly_average',
    'register_default_strategies',
    'initialize_calculation_system'
]
