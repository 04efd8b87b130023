"""Role model and ownership checks for the scheduling and evaluation core.

Every scheduling service receives a resolved :class:`Caller` and asks this
module whether the caller may act on a given instructor, file or student.
Denials raise :class:`ForbiddenException`.
"""

from dataclasses import dataclass
from enum import Enum

from backend.core.exceptions import ForbiddenException
from backend.models.file import File
from backend.models.user import User


class Role(str, Enum):
    STUDENT = 'student'
    INSTRUCTOR = 'instructor'
    SCHOOL_ADMIN = 'school_admin'
    SUPER_ADMIN = 'super_admin'

    @classmethod
    def parse(cls, value: str | None) -> 'Role':
        normalized = (value or '').strip().lower()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ForbiddenException(f'Unknown role {value!r}.', code='Forbidden') from exc


@dataclass(frozen=True)
class Caller:
    user_id: int
    role: Role
    school_id: int | None = None

    @classmethod
    def from_user(cls, user: User) -> 'Caller':
        return cls(user_id=user.id, role=Role.parse(user.role), school_id=user.school_id)

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.INSTRUCTOR, Role.SCHOOL_ADMIN, Role.SUPER_ADMIN)


def _deny(message: str) -> ForbiddenException:
    return ForbiddenException(message, code='Forbidden')


def _same_school(caller: Caller, user: User | None) -> bool:
    return user is not None and caller.school_id is not None and caller.school_id == user.school_id


def ensure_can_manage_availability(caller: Caller, instructor: User) -> None:
    if caller.role is Role.SUPER_ADMIN:
        return
    if caller.role is Role.INSTRUCTOR and caller.user_id == instructor.id:
        return
    if caller.role is Role.SCHOOL_ADMIN and _same_school(caller, instructor):
        return
    raise _deny('You cannot manage availability for this instructor.')


def ensure_can_book(caller: Caller, file: File) -> None:
    """Students book their own files; staff book files they are responsible for."""
    if caller.role is Role.SUPER_ADMIN:
        return
    if caller.role is Role.STUDENT and caller.user_id == file.student_id:
        return
    if caller.role is Role.INSTRUCTOR and caller.user_id == file.instructor_id:
        return
    if caller.role is Role.SCHOOL_ADMIN and _same_school(caller, file.student):
        return
    raise _deny('You cannot schedule appointments for this file.')


def ensure_file_instructor(caller: Caller, file: File) -> None:
    if caller.role is Role.INSTRUCTOR and caller.user_id == file.instructor_id:
        return
    raise _deny('Only the instructor assigned to this file can evaluate its sessions.')


def ensure_can_view_file(caller: Caller, file: File) -> None:
    if caller.role is Role.SUPER_ADMIN:
        return
    if caller.role is Role.INSTRUCTOR and caller.user_id == file.instructor_id:
        return
    if caller.role is Role.STUDENT and caller.user_id == file.student_id:
        return
    if caller.role is Role.SCHOOL_ADMIN and _same_school(caller, file.student):
        return
    raise _deny('You cannot view this file.')


def ensure_can_view_instructor(caller: Caller, instructor: User) -> None:
    if caller.role is Role.SUPER_ADMIN:
        return
    if caller.role is Role.INSTRUCTOR and caller.user_id == instructor.id:
        return
    if caller.role is Role.SCHOOL_ADMIN and _same_school(caller, instructor):
        return
    raise _deny('You cannot view appointments for this instructor.')


def ensure_can_view_student_history(caller: Caller, student: User, instructs_student: bool) -> None:
    if caller.role is Role.SUPER_ADMIN:
        return
    if caller.role is Role.STUDENT and caller.user_id == student.id:
        return
    if caller.role is Role.INSTRUCTOR and instructs_student:
        return
    if caller.role is Role.SCHOOL_ADMIN and _same_school(caller, student):
        return
    raise _deny('You cannot view session forms for this student.')
