# 计算器模块
from .grade_calculator import (
    GradeLevelConfig,
    SubjectSummary,
    MonthlyAverageCalculator,
    average_for_group,
    build_subject_summary,
    letter_grade,
    summarize_month
)
from .semester_calculator import (
    SemesterAverage,
    SemesterAverageCalculator,
    YearlyAverageCalculator,
    semester_average,
    yearly_average
)
from .attendance_calculator import (
    attendance_summary,
    weighted_absences,
    apply_attendance_penalty
)
from .strategy_registry import (
    CalculationStrategyRegistry,
    register_default_strategies,
    initialize_calculation_system
)

__all__ = [
    'GradeLevelConfig',
    'SubjectSummary',
    'MonthlyAverageCalculator',
    'average_for_group',
    'build_subject_summary',
    'letter_grade',
    'summarize_month',
    'SemesterAverage',
    'SemesterAverageCalculator',
    'YearlyAverageCalculator',
    'semester_average',
    'yearly_average',
    'attendance_summary',
    'weighted_absences',
    'apply_attendance_penalty',
    'CalculationStrategyRegistry',
    'register_default_strategies',
    'initialize_calculation_system'
]
