from datetime import date, time

from . import db
from .models import AcademyClass, AcademyClosure, ClassSchedule, Student, Teacher


def seed_data() -> bool:
    if AcademyClass.query.count():
        return False

    teacher = Teacher(name="Kim Minji")
    math = AcademyClass(
        name="Middle school maths A",
        teacher=teacher,
        monthly_fee=320000,
        sessions_per_month=12,
    )
    math.schedules = [
        ClassSchedule(weekday=weekday, start_time=time(17, 0), end_time=time(19, 0))
        for weekday in (0, 2, 4)
    ]
    english = AcademyClass(
        name="English reading",
        teacher=teacher,
        monthly_fee=240000,
        sessions_per_month=8,
    )
    english.schedules = [
        ClassSchedule(weekday=weekday, start_time=time(15, 0), end_time=time(16, 30))
        for weekday in (1, 3)
    ]

    students = [Student(name=name) for name in ("Lee Seojun", "Park Jiwoo", "Choi Yuna")]
    math.students = students
    english.students = students[:2]

    today = date.today()
    closure = AcademyClosure(
        closure_date=date(today.year, 12, 25),
        closure_type="global",
        reason="Christmas",
    )

    db.session.add_all([teacher, math, english, closure, *students])
    db.session.commit()
    return True
