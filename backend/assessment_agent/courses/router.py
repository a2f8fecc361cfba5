"""Course and enrollment endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..auth.access import Identity
from ..auth.service import get_current_identity
from ..database import get_db
from ..errors import raise_for_result
from ..schemas import CourseCreate, CourseResponse, CourseUpdate, EnrollmentResponse, EnrollStudentRequest
from . import service

router = APIRouter(prefix="/courses", tags=["Courses"])


@router.post("", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
def create_course(
    data: CourseCreate,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.create_course(db, identity, data))


@router.get("", response_model=List[CourseResponse])
def list_courses(
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Courses visible to the caller."""
    return raise_for_result(service.list_courses(db, identity))


@router.get("/{course_id}", response_model=CourseResponse)
def get_course(
    course_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.get_course(db, identity, course_id))


@router.patch("/{course_id}", response_model=CourseResponse)
def update_course(
    course_id: str,
    data: CourseUpdate,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.update_course(db, identity, course_id, data))


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_course(
    course_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Delete a course with its questions, enrollments and submissions."""
    raise_for_result(service.delete_course(db, identity, course_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{course_id}/enroll", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
def enroll(
    course_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Enroll the calling student."""
    return raise_for_result(service.enroll(db, identity, course_id))


@router.post("/{course_id}/enrollments", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
def enroll_student(
    course_id: str,
    data: EnrollStudentRequest,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.enroll_student(db, identity, course_id, data.student_id))


@router.delete("/{course_id}/enrollments/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def unenroll(
    course_id: str,
    student_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    raise_for_result(service.unenroll(db, identity, course_id, student_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
