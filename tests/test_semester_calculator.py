# 学期/学年平均分测试
import pytest

from gradebook.calculation.records import parse_grade_date, sort_grade_dates, records_to_frame
from gradebook.calculation.calculators.semester_calculator import (
    SemesterAverage,
    SemesterAverageCalculator,
    YearlyAverageCalculator,
    filter_semester,
    semester_average,
    semester_average_with_attendance,
    yearly_average,
)


def grade(subject, score, grade_date, semester='1', student_id=1):
    return {
        'student_id': student_id,
        'subject_name': subject,
        'score': score,
        'grade_date': grade_date,
        'semester': semester,
    }


class TestGradeDates:
    """月份标签解析与排序测试"""

    def test_parse_grade_date(self):
        assert parse_grade_date("01/25") == (2025, 1)
        assert parse_grade_date("1/25") == (2025, 1)
        assert parse_grade_date("12/2024") == (2024, 12)

    def test_parse_invalid_labels(self):
        assert parse_grade_date("13/25") is None
        assert parse_grade_date("00/25") is None
        assert parse_grade_date("2025-01") is None
        assert parse_grade_date("") is None
        assert parse_grade_date(None) is None

    def test_sort_across_year_boundary(self):
        """按 (年, 月) 排序而不是按字符串排序"""
        labels = ["01/25", "11/24", "12/24", "bad", "01/25"]
        assert sort_grade_dates(labels) == ["11/24", "12/24", "01/25"]

    def test_month_key_column(self):
        frame = records_to_frame([grade('Math', 8, '02/25'), grade('Math', 8, 'x')])
        assert list(frame['month_key']) == [(2025, 2), None]


class TestSemesterAverage:
    """学期平均分测试"""

    def test_empty_semester_returns_zeros(self):
        for level in (1, 5, 7, 9, 42):
            for tag in ('1', '2'):
                result = semester_average([], tag, level)
                assert result.last_month == 0
                assert result.previous_months == 0
                assert result.overall == 0

    def test_only_unparseable_dates_is_empty(self):
        records = [grade('Math', 8, 'bad'), grade('Khmer', 9, None)]
        result = semester_average(records, '1', 5)

        assert result == SemesterAverage()

    def test_overall_is_simple_mean(self):
        """学期平均分 = (末月 + 之前月份) / 2"""
        records = [
            grade('Math', 300, '01/25'), grade('Khmer', 260, '01/25'),   # 560 / 14 = 40
            grade('Math', 220, '11/24'), grade('Khmer', 200, '11/24'),   # 420
            grade('Math', 210, '12/24'), grade('Khmer', 210, '12/24'),   # 420 -> 420 / 14 = 30
        ]
        result = semester_average(records, '1', 8)

        assert result.last_month == pytest.approx(40.0)
        assert result.previous_months == pytest.approx(30.0)
        assert result.overall == pytest.approx(35.0)
        assert result.last_month_label == '01/25'
        assert result.previous_month_labels == ['11/24', '12/24']

    def test_previous_months_use_last_month_subject_count(self):
        """1-6年级之前月份沿用末月的科目数"""
        records = [
            grade('Math', 6, '01/25'), grade('Khmer', 8, '01/25'),
            grade('Math', 7, '02/25'), grade('Khmer', 9, '02/25'), grade('Science', 8, '02/25'),
        ]
        result = semester_average(records, '1', 5)

        assert result.last_month == pytest.approx(8.0)
        assert result.previous_months == pytest.approx(14 / 3)
        assert result.overall == pytest.approx((8.0 + 14 / 3) / 2)

    def test_single_month_semester(self):
        records = [grade('Math', 8, '03/25'), grade('Khmer', 6, '03/25')]
        result = semester_average(records, '1', 4)

        assert result.last_month == pytest.approx(7.0)
        assert result.previous_months == 0.0
        assert result.overall == pytest.approx(3.5)

    def test_other_semester_records_excluded(self):
        records = [
            grade('Math', 8, '01/25', semester='1'),
            grade('Math', 2, '05/25', semester='2'),
        ]
        result = semester_average(records, '1', 5)

        assert result.last_month_label == '01/25'
        assert result.last_month == pytest.approx(8.0)

    def test_unparseable_month_excluded(self):
        records = [grade('Math', 8, '01/25'), grade('Math', 100, '??')]
        result = semester_average(records, '1', 5)

        assert result.last_month == pytest.approx(8.0)
        assert result.previous_month_labels == []

    def test_to_dict(self):
        result = semester_average([grade('Math', 8, '01/25')], '1', 5).to_dict()
        assert set(result) == {
            'last_month', 'previous_months', 'overall', 'last_month_label', 'previous_month_labels'
        }


class TestSemesterAverageWithAttendance:
    """按月考勤扣分的学期平均分测试"""

    def setup_method(self):
        self.records = [
            grade('Math', 6, '01/25'), grade('Khmer', 8, '01/25'),
            grade('Math', 7, '02/25'), grade('Khmer', 9, '02/25'), grade('Science', 8, '02/25'),
        ]

    def test_each_month_uses_own_subject_count(self):
        result = semester_average_with_attendance(self.records, '1', 5, {})

        assert result.previous_months == pytest.approx(7.0)
        assert result.last_month == pytest.approx(8.0)
        assert result.overall == pytest.approx(7.5)

    def test_penalty_applied_per_month(self):
        absences = {(2025, 1): 2, (2025, 2): 4}
        result = semester_average_with_attendance(self.records, '1', 5, absences)

        assert result.previous_months == pytest.approx(7.0 * 0.95)
        # 末月同样扣分
        assert result.last_month == pytest.approx(8.0 * 0.9)
        assert result.overall == pytest.approx((7.2 + 6.65) / 2)
        assert result.last_month_label == '02/25'
        assert result.previous_month_labels == ['01/25']

    def test_empty_semester(self):
        result = semester_average_with_attendance([], '1', 5, {(2025, 1): 4})
        assert result == SemesterAverage()


class TestFilterSemester:
    """学期筛选测试"""

    def test_untagged_records_kept(self):
        frame = records_to_frame([
            grade('Math', 8, '01/25', semester=None),
            grade('Math', 8, '01/25', semester='2'),
            grade('Math', 8, '01/25', semester='ឆមាសទី ១'),
        ])
        assert len(filter_semester(frame, '1')) == 2


class TestYearlyAverage:
    """学年平均分测试"""

    def test_empty_semester_pulls_average_down(self):
        """无成绩的学期按0计入"""
        assert yearly_average(SemesterAverage(overall=50), SemesterAverage()) == 25

    def test_accepts_numbers_and_dicts(self):
        assert yearly_average(40, {'overall': 30}) == pytest.approx(35.0)
        assert yearly_average(None, None) == 0.0

    def test_yearly_strategy(self):
        records = [
            grade('Math', 8, '01/25', semester='1'),
            grade('Math', 6, '05/25', semester='2'),
        ]
        result = YearlyAverageCalculator().calculate(records, {'grade_level': 5})

        assert result['semester1']['overall'] == pytest.approx(4.0)
        assert result['semester2']['overall'] == pytest.approx(3.0)
        assert result['overall'] == pytest.approx(3.5)
        assert result['semester1_label'] == 'ឆមាសទី ១'

    def test_yearly_strategy_warns_untagged(self):
        records = [grade('Math', 8, '01/25', semester=None)]
        result = YearlyAverageCalculator().validate_input(records, {'grade_level': 5})

        assert result['is_valid'] is True
        assert any('未标注学期' in warning for warning in result['warnings'])


class TestSemesterAverageCalculator:
    """学期平均分策略测试"""

    def setup_method(self):
        self.strategy = SemesterAverageCalculator()

    def test_requires_semester(self):
        result = self.strategy.validate_input([], {'grade_level': 5})

        assert result['is_valid'] is False
        assert any('semester' in error for error in result['errors'])

    def test_calculate(self):
        records = [grade('Math', 9, '01/25'), grade('Math', 9, '02/25')]
        result = self.strategy.calculate(records, {'grade_level': 5, 'semester': '1'})

        assert result['overall'] == pytest.approx(9.0)
        assert result['letter_grade'] == 'A'
        assert result['semester_label'] == 'ឆមាសទី ១'
