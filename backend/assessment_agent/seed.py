"""Seed the database with a super admin and, optionally, demo data.

Usage::

    python -m assessment_agent.seed --create-tables
    python -m assessment_agent.seed --email admin@example.com --password 'S3cure!pass' --demo

Re-running is safe: existing users are left alone and demo rows are only
created when missing.
"""

import argparse
import logging
import os
from typing import Optional

from sqlalchemy.orm import Session

from .database import create_tables, session_scope
from .models import BaseExample, Course, CourseEnrollment, Question, SubmissionType, User, UserRole

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "Password123!"

HTML_BASE_EXAMPLE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>My Web Page</title>
</head>
<body>
    <header><h1>Welcome to My Website</h1></header>
    <main><section id="home"><p>This is the main content area.</p></section></main>
    <footer><p>&copy; My Website</p></footer>
</body>
</html>"""


def get_or_create_user(db: Session, email: str, name: str, role: UserRole, password: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user is not None:
        logger.info(f"User {email} already exists ({user.role.value})")
        return user
    user = User(email=email, name=name, role=role)
    user.set_password(password)
    db.add(user)
    db.flush()
    logger.info(f"Created {role.value} {email}")
    return user


def seed_demo(db: Session, super_admin: User) -> None:
    """An instructor, two students and one course with a text question."""
    instructor = get_or_create_user(
        db, "instructor@assessment-agent.com", "Course Instructor", UserRole.course_admin, DEMO_PASSWORD
    )
    students = [
        get_or_create_user(db, "student1@assessment-agent.com", "Alice Johnson", UserRole.student, DEMO_PASSWORD),
        get_or_create_user(db, "student2@assessment-agent.com", "Bob Smith", UserRole.student, DEMO_PASSWORD),
    ]

    course = db.query(Course).filter(Course.title == "Web Development Fundamentals").first()
    if course is None:
        course = Course(
            title="Web Development Fundamentals",
            description="Learn the basics of HTML, CSS, JavaScript, and modern web development frameworks.",
            admin_id=instructor.id,
            created_by_id=super_admin.id,
        )
        db.add(course)
        db.flush()
        logger.info(f"Created course {course.title}")

    for student in students:
        if not course.has_student(student.id):
            course.enrollments.append(CourseEnrollment(student_id=student.id))

    question = db.query(Question).filter(
        Question.course_id == course.id, Question.title == "HTML Document Structure"
    ).first()
    if question is None:
        question = Question(
            title="HTML Document Structure",
            description="Create a complete HTML document with proper structure including doctype, head, and body sections.",
            submission_type=SubmissionType.text,
            criteria="Must include proper DOCTYPE, meta tags, title, and semantic HTML elements.",
            course_id=course.id,
            created_by_id=instructor.id,
        )
        db.add(question)
        db.flush()
        db.add(BaseExample(
            question_id=question.id,
            content=HTML_BASE_EXAMPLE,
            type=SubmissionType.text,
            example_metadata={
                "criteria": ["Proper DOCTYPE", "Meta tags", "Semantic elements", "Valid structure"],
                "points": ["DOCTYPE declaration", "Head section with meta tags", "Semantic HTML5 elements"],
            },
        ))
        logger.info(f"Created question {question.title} with base example")
    db.flush()


def seed(email: str, password: str, name: Optional[str] = None, demo: bool = False) -> None:
    with session_scope() as db:
        super_admin = get_or_create_user(db, email, name or "Super Administrator", UserRole.super_admin, password)
        if demo:
            seed_demo(db, super_admin)


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Seed the Assessment Agent database")
    parser.add_argument("--email", default=os.getenv("SEED_ADMIN_EMAIL", "admin@assessment-agent.com"),
                        help="Super admin email")
    parser.add_argument("--password", default=os.getenv("SEED_ADMIN_PASSWORD"), help="Super admin password")
    parser.add_argument("--name", default=None, help="Super admin display name")
    parser.add_argument("--create-tables", action="store_true", help="Create tables before seeding")
    parser.add_argument("--demo", action="store_true", help="Also create demo course, users and question")
    args = parser.parse_args(argv)

    if not args.password:
        parser.error("--password or SEED_ADMIN_PASSWORD is required")

    logging.basicConfig(level=logging.INFO)
    if args.create_tables:
        create_tables()
    seed(args.email, args.password, name=args.name, demo=args.demo)
    logger.info("Seeding complete")


if __name__ == "__main__":
    main()
