# tests/factories.py

"""Small builders for test data; every school year starts on Monday 2024-09-02."""

from datetime import date

from academics.models import Class
from academics.services import SchoolYearService
from students.models import Student
from discipline.models import ViolationType

YEAR_START = date(2024, 9, 2)
YEAR_END = date(2025, 5, 31)


def make_school_year(year='2024-2025', start_date=YEAR_START, end_date=YEAR_END, **fields):
    return SchoolYearService.create_school_year(
        year, start_date, end_date, actor_id='admin-1', **fields
    )


def make_class(school_year, name='10A1', grade=10):
    return Class.objects.create(school_year=school_year, name=name, grade=grade)


def make_student(school_class, code='S001', full_name='An Nguyen'):
    return Student.objects.create(student_code=code, full_name=full_name, school_class=school_class)


def make_violation_type(name='Late arrival', default_penalty=1, **fields):
    return ViolationType.objects.create(name=name, default_penalty=default_penalty, **fields)


def excellent_week(periods=25, days=(1, 2, 3, 4, 5)):
    return [
        {'day': day, 'excellent': periods, 'good': 0, 'average': 0, 'poor': 0, 'bad': 0}
        for day in days
    ]
