# 报告服务集成测试
from datetime import date

import pytest

from gradebook.database.repositories import GradeDataSource
from gradebook.services.report_service import (
    ReportService,
    build_monthly_report,
    build_semester_report,
    build_yearly_report,
    class_summary,
    month_range,
    present_report,
)


def grade(student_id, subject, score, grade_date='01/25', semester='1'):
    return {
        'student_id': student_id,
        'subject_name': subject,
        'score': score,
        'grade_date': grade_date,
        'semester': semester,
    }


MONTH_RECORDS = [
    grade(1, 'Math', 8), grade(1, 'Khmer', 9),
    grade(2, 'Math', 8), grade(2, 'Khmer', 9),
    grade(3, 'Math', 6), grade(3, 'Khmer', 7),
]


class FakeDataSource(GradeDataSource):
    """内存数据源"""

    def __init__(self, records, attendance=None, grade_level=5):
        self.records = records
        self.attendance = attendance or []
        self.grade_level = grade_level
        self.calls = []

    def fetch_grades(self, course_id, semester_tag=None, grade_date=None):
        self.calls.append(('fetch_grades', course_id, semester_tag))
        return list(self.records)

    def fetch_attendance(self, course_id, start=None, end=None):
        self.calls.append(('fetch_attendance', course_id, start, end))
        return list(self.attendance)

    def fetch_grade_level(self, course_id):
        return self.grade_level


class TestMonthlyReport:
    """月报告测试"""

    def test_students_ranked_with_ties(self):
        report = build_monthly_report(MONTH_RECORDS, 5, '01/25', course_id=10)
        students = report['students']

        assert report['report_type'] == 'monthly'
        assert [student['student_id'] for student in students] == [1, 2, 3]
        assert [student['rank'] for student in students] == [1, 1, 3]
        assert students[0]['average'] == pytest.approx(8.5)
        assert students[0]['average_display'] == 9.0
        assert students[0]['letter_grade'] == 'B'
        assert students[2]['letter_grade'] == 'D'

    def test_subject_ranks(self):
        report = build_monthly_report(MONTH_RECORDS, 5, '01/25')
        third = report['students'][2]

        assert {subject['subject_name']: subject['rank'] for subject in third['subjects']} == {
            'Math': 3, 'Khmer': 3
        }

    def test_month_filter(self):
        records = MONTH_RECORDS + [grade(1, 'Math', 1, grade_date='02/25')]
        report = build_monthly_report(records, 5, '01/25')

        assert report['students'][0]['average'] == pytest.approx(8.5)

    def test_class_summary(self):
        report = build_monthly_report(MONTH_RECORDS, 5, '01/25')
        summary = report['summary']

        assert summary['student_count'] == 3
        assert summary['highest'] == pytest.approx(8.5)
        assert summary['lowest'] == pytest.approx(6.5)
        assert summary['grade_distribution']['B'] == 2
        assert summary['grade_distribution']['D'] == 1

    def test_empty_month(self):
        report = build_monthly_report([], 5, '01/25')

        assert report['students'] == []
        assert report['summary']['student_count'] == 0

    def test_attendance_penalty_changes_ranking(self):
        attendance = [
            {'student_id': 1, 'session': 'FULL', 'status': 'absent'},
            {'student_id': 1, 'session': 'FULL', 'status': 'absent'},
        ]
        report = build_monthly_report(
            MONTH_RECORDS, 5, '01/25', attendance=attendance, apply_attendance_penalty=True
        )
        by_id = {student['student_id']: student for student in report['students']}

        assert by_id[1]['adjusted_average'] == pytest.approx(8.5 * 0.9)
        assert by_id[1]['average'] == pytest.approx(8.5)
        assert by_id[2]['rank'] == 1
        assert by_id[1]['rank'] == 2
        assert by_id[1]['attendance']['absent'] == 4

    def test_attendance_without_penalty_keeps_ranking(self):
        attendance = [{'student_id': 1, 'session': 'FULL', 'status': 'absent'}]
        report = build_monthly_report(MONTH_RECORDS, 5, '01/25', attendance=attendance)
        by_id = {student['student_id']: student for student in report['students']}

        assert by_id[1]['rank'] == 1
        assert by_id[1]['adjusted_average'] == pytest.approx(8.5)


class TestSemesterAndYearlyReport:
    """学期/学年报告测试"""

    def test_semester_report(self):
        records = [
            grade(1, 'Math', 8, '01/25'), grade(1, 'Math', 6, '02/25'),
            grade(2, 'Math', 9, '01/25'), grade(2, 'Math', 9, '02/25'),
            grade(2, 'Math', 1, '05/25', semester='2'),
        ]
        report = build_semester_report(records, 5, '1', course_id=3)
        first, second = report['students']

        assert report['semester_label'] == 'ឆមាសទី ១'
        assert first['student_id'] == 2
        assert first['overall'] == pytest.approx(9.0)
        assert first['rank'] == 1
        assert second['overall'] == pytest.approx(7.0)
        assert second['last_month_rank'] == 2
        assert second['subjects'][0]['score'] == 6

    def test_semester_report_custom_labels(self):
        report = build_semester_report([], 5, '2', semester_labels={'1': 'S1', '2': 'S2'})
        assert report['semester_label'] == 'S2'

    def test_yearly_report(self):
        records = [
            grade(1, 'Math', 8, '01/25', semester='1'),
            grade(1, 'Math', 6, '05/25', semester='2'),
            grade(2, 'Math', 10, '01/25', semester='1'),
        ]
        report = build_yearly_report(records, 5)
        by_id = {student['student_id']: student for student in report['students']}

        assert by_id[1]['overall'] == pytest.approx(3.5)
        # 第二学期无成绩按0计入
        assert by_id[2]['overall'] == pytest.approx(2.5)
        assert by_id[2]['semester1_rank'] == 1
        assert by_id[2]['semester2_rank'] == 2
        assert by_id[1]['rank'] == 1
        assert report['semester2_label'] == 'ឆមាសទី ២'

    def test_semester_report_attendance_penalty(self):
        records = [grade(1, 'Math', 8, '01/25'), grade(1, 'Math', 8, '02/25'), grade(2, 'Math', 8, '01/25'),
                   grade(2, 'Math', 8, '02/25')]
        attendance = [
            {'student_id': 1, 'session': 'FULL', 'status': 'absent', 'attendance_date': '2025-02-10'},
            {'student_id': 1, 'session': 'FULL', 'status': 'absent', 'attendance_date': '2025-02-11'},
        ]
        plain = build_semester_report(records, 5, '1', attendance=attendance)
        adjusted = build_semester_report(
            records, 5, '1', attendance=attendance, apply_attendance_penalty=True
        )
        by_id = {student['student_id']: student for student in adjusted['students']}

        assert plain['attendance_adjusted'] is False
        assert [student['overall'] for student in plain['students']] == [8.0, 8.0]
        assert adjusted['attendance_adjusted'] is True
        assert by_id[1]['last_month'] == pytest.approx(7.2)
        assert by_id[1]['overall'] == pytest.approx(7.6)
        assert by_id[2]['overall'] == pytest.approx(8.0)
        assert by_id[2]['rank'] == 1
        assert by_id[1]['rank'] == 2

    def test_yearly_report_attendance_penalty(self):
        records = [grade(1, 'Math', 8, '01/25', semester='1'), grade(1, 'Math', 8, '05/25', semester='2')]
        attendance = [
            {'student_id': 1, 'session': 'FULL', 'status': 'absent', 'attendance_date': '2025-05-05'},
            {'student_id': 1, 'session': 'FULL', 'status': 'absent', 'attendance_date': '2025-05-06'},
        ]
        report = build_yearly_report(records, 5, attendance=attendance, apply_attendance_penalty=True)
        student = report['students'][0]

        assert report['attendance_adjusted'] is True
        assert student['semester1_average'] == pytest.approx(4.0)
        assert student['semester2_average'] == pytest.approx(3.6)
        assert student['overall'] == pytest.approx(3.8)

    def test_missing_student_id_keeps_integer_ids(self):
        records = [
            {'subject_name': 'Math', 'score': 8, 'grade_date': '01/25', 'semester': '1'},
            grade(2, 'Math', 7),
        ]
        for report in (build_monthly_report(records, 5, '01/25'),
                       build_semester_report(records, 5, '1'),
                       build_yearly_report(records, 5)):
            ids = [student['student_id'] for student in report['students']]

            assert sorted(ids, key=lambda value: value is not None) == [None, 2]
            assert all(type(value) is int for value in ids if value is not None)


class TestReportService:
    """报告服务测试"""

    def test_generate_monthly_with_attendance(self):
        source = FakeDataSource(MONTH_RECORDS, attendance=[])
        service = ReportService(source)
        report = service.generate('monthly', 10, month='01/25', apply_attendance_penalty=True)

        assert report['course_id'] == 10
        assert ('fetch_attendance', 10, date(2025, 1, 1), date(2025, 1, 31)) in source.calls

    def test_generate_semester_passes_tag(self):
        source = FakeDataSource(MONTH_RECORDS)
        ReportService(source).generate('semester', 10, semester='2')

        assert ('fetch_grades', 10, '2') in source.calls

    def test_generate_semester_with_attendance_penalty(self):
        records = [grade(1, 'Math', 4, '01/25'), grade(1, 'Math', 4, '02/25')]
        attendance = [
            {'student_id': 1, 'session': 'FULL', 'status': 'absent', 'attendance_date': date(2025, 1, day)}
            for day in (6, 7, 8, 9)
        ]
        source = FakeDataSource(records, attendance=attendance)
        service = ReportService(source)

        plain = service.generate('semester', 1, semester='1')
        adjusted = service.generate('semester', 1, semester='1', apply_attendance_penalty=True)

        assert plain['students'][0]['overall'] == pytest.approx(4.0)
        assert adjusted['students'][0]['overall'] == pytest.approx((4.0 * 0.9 + 4.0) / 2)
        assert adjusted['attendance_adjusted'] is True
        assert ('fetch_attendance', 1, date(2025, 1, 1), date(2025, 2, 28)) in source.calls

    def test_generate_yearly_with_attendance_penalty(self):
        records = [grade(1, 'Math', 4, '01/25', semester='1')]
        attendance = [
            {'student_id': 1, 'session': 'FULL', 'status': 'absent', 'attendance_date': '2025-01-06'},
            {'student_id': 1, 'session': 'FULL', 'status': 'absent', 'attendance_date': '2025-01-07'},
        ]
        source = FakeDataSource(records, attendance=attendance)
        report = ReportService(source).generate('yearly', 1, apply_attendance_penalty=True)

        # 单月学期: (末月 + 0) / 2，学年再与空学期平均
        assert report['students'][0]['overall'] == pytest.approx(4.0 * 0.9 / 4)
        assert ('fetch_attendance', 1, date(2025, 1, 1), date(2025, 1, 31)) in source.calls

    def test_generate_without_penalty_skips_attendance(self):
        source = FakeDataSource(MONTH_RECORDS)
        report = ReportService(source).generate('semester', 10, semester='1')

        assert report['attendance_adjusted'] is False
        assert not [call for call in source.calls if call[0] == 'fetch_attendance']

    def test_generate_yearly_uses_course_grade_level(self):
        source = FakeDataSource([grade(1, 'Math', 300, '01/25')], grade_level=8)
        report = ReportService(source).generate('yearly', 10)

        assert report['grade_level'] == 8
        assert report['students'][0]['semester1']['last_month'] == pytest.approx(300 / 14)

    def test_generate_errors(self):
        service = ReportService(FakeDataSource(MONTH_RECORDS))

        with pytest.raises(ValueError, match="未知的报告类型"):
            service.generate('weekly', 10)
        with pytest.raises(ValueError, match="month"):
            service.generate('monthly', 10)
        with pytest.raises(ValueError, match="semester"):
            service.generate('semester', 10)
        with pytest.raises(ValueError, match="学期标识"):
            service.generate('semester', 10, semester='3')

    def test_missing_course_grade_level(self):
        service = ReportService(FakeDataSource(MONTH_RECORDS, grade_level=None))

        with pytest.raises(ValueError):
            service.generate('yearly', 99)


class TestHelpers:
    """辅助函数测试"""

    def test_month_range(self):
        assert month_range('02/24') == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_range('bad') is None

    def test_class_summary_empty(self):
        assert class_summary([], 'average', 5)['class_average'] == 0.0

    def test_present_report_rounds(self):
        report = build_monthly_report(
            [grade(1, 'Math', 7), grade(1, 'Khmer', 7), grade(1, 'Science', 8)], 5, '01/25'
        )
        presented = present_report(report)

        assert presented['students'][0]['average'] == 7.33
        assert report['students'][0]['average'] == pytest.approx(22 / 3)
