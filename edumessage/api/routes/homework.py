import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, selectinload

from edumessage.api.deps import get_class_or_404, get_current_user, is_class_member, require_class_access
from edumessage.core.utils import as_utc, utcnow
from edumessage.db.database import get_db
from edumessage.models.class_model import ClassMember, MemberRole
from edumessage.models.homework import (
    HomeworkAssignment, HomeworkGrade, HomeworkSubmission, SubmissionFormat, SubmissionStatus,
)
from edumessage.models.user import User, UserRole
from edumessage.schemas.homework import (
    AssignmentCreate, AssignmentDetail, AssignmentResponse, AssignmentUpdate,
    GradeCreate, GradeResponse, GradeResult, SubmissionCreate, SubmissionResponse, SubmissionResult,
)
from edumessage.schemas.user import UserSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/homework", tags=["Homework"])

# Fields that may not be cleared to null on update
REQUIRED_FIELDS = {
    "title", "description", "due_date", "points_possible", "allow_late_submission",
    "late_penalty_percent", "submission_format", "is_published",
}


def _get_own_assignment(db: Session, assignment_id: int, user: User) -> HomeworkAssignment:
    assignment = db.query(HomeworkAssignment).filter(HomeworkAssignment.id == assignment_id).first()
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    if assignment.teacher_id != user.id:
        raise HTTPException(status_code=403, detail="Only the assignment's teacher can change it")
    return assignment


# ── Assignments ───────────────────────────────────────────────────


@router.get("/assignments", response_model=list[AssignmentResponse])
def list_assignments(
    class_id: int = Query(...),
    student_view: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Assignments by due date. Non-teachers see published ones only."""
    cls = require_class_access(db, current_user, class_id)
    is_teacher = cls.teacher_id == current_user.id

    query = (
        db.query(HomeworkAssignment)
        .options(selectinload(HomeworkAssignment.teacher))
        .filter(HomeworkAssignment.class_id == class_id)
    )
    if not is_teacher:
        query = query.filter(HomeworkAssignment.is_published.is_(True))
    assignments = query.order_by(HomeworkAssignment.due_date.asc(), HomeworkAssignment.id.asc()).all()

    results = [AssignmentResponse.model_validate(a) for a in assignments]
    if student_view and not is_teacher and assignments:
        own = {
            s.assignment_id: s
            for s in db.query(HomeworkSubmission)
            .options(selectinload(HomeworkSubmission.grade))
            .filter(
                HomeworkSubmission.student_id == current_user.id,
                HomeworkSubmission.assignment_id.in_([a.id for a in assignments]),
            )
        }
        for item in results:
            submission = own.get(item.id)
            if submission:
                item.my_submission = SubmissionResponse.model_validate(submission)
    return results


@router.post("/assignments", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
def create_assignment(
    data: AssignmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cls = get_class_or_404(db, data.class_id)
    if cls.teacher_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the class teacher can create assignments")

    assignment = HomeworkAssignment(
        **data.model_dump(exclude={"due_date"}),
        due_date=as_utc(data.due_date),
        teacher_id=current_user.id,
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    logger.info(f"Assignment {assignment.id} created in class {cls.id} due {assignment.due_date}")
    return assignment


@router.get("/assignments/{assignment_id}", response_model=AssignmentDetail)
def get_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    assignment = (
        db.query(HomeworkAssignment)
        .options(selectinload(HomeworkAssignment.teacher))
        .filter(HomeworkAssignment.id == assignment_id)
        .first()
    )
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")

    if assignment.teacher_id == current_user.id:
        submissions = (
            db.query(HomeworkSubmission)
            .options(selectinload(HomeworkSubmission.student), selectinload(HomeworkSubmission.grade))
            .filter(HomeworkSubmission.assignment_id == assignment.id)
            .order_by(HomeworkSubmission.submitted_at.desc(), HomeworkSubmission.id.desc())
            .all()
        )
        students = (
            db.query(User)
            .join(ClassMember, ClassMember.user_id == User.id)
            .filter(
                ClassMember.class_id == assignment.class_id,
                ClassMember.role == MemberRole.STUDENT.value,
            )
            .order_by(User.full_name)
            .all()
        )
        return AssignmentDetail(
            assignment=AssignmentResponse.model_validate(assignment),
            submissions=[SubmissionResponse.model_validate(s) for s in submissions],
            class_members=[UserSummary.model_validate(u) for u in students],
        )

    if not assignment.is_published:
        raise HTTPException(status_code=403, detail="This assignment has not been published")
    if not is_class_member(db, current_user, assignment.class_id):
        raise HTTPException(status_code=403, detail="You are not a member of this class")

    submission = (
        db.query(HomeworkSubmission)
        .options(selectinload(HomeworkSubmission.grade))
        .filter(
            HomeworkSubmission.assignment_id == assignment.id,
            HomeworkSubmission.student_id == current_user.id,
        )
        .first()
    )
    return AssignmentDetail(
        assignment=AssignmentResponse.model_validate(assignment),
        submission=SubmissionResponse.model_validate(submission) if submission else None,
    )


@router.put("/assignments/{assignment_id}", response_model=AssignmentResponse)
def update_assignment(
    assignment_id: int,
    data: AssignmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    assignment = _get_own_assignment(db, assignment_id, current_user)

    updates = data.model_dump(exclude_unset=True)
    for field in list(updates):
        if field in REQUIRED_FIELDS and updates[field] is None:
            raise HTTPException(status_code=400, detail=f"{field} cannot be empty")
    for field in ("title", "description"):
        if field in updates:
            updates[field] = updates[field].strip()
            if not updates[field]:
                raise HTTPException(status_code=400, detail=f"{field} cannot be empty")
    if "due_date" in updates:
        updates["due_date"] = as_utc(updates["due_date"])

    for field, value in updates.items():
        setattr(assignment, field, value)
    db.commit()
    db.refresh(assignment)
    return assignment


@router.delete("/assignments/{assignment_id}")
def delete_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    assignment = _get_own_assignment(db, assignment_id, current_user)
    db.delete(assignment)
    db.commit()
    logger.info(f"Assignment {assignment_id} deleted by teacher {current_user.id}")
    return {"message": "Assignment deleted"}


# ── Submissions ───────────────────────────────────────────────────


@router.post("/submissions", response_model=SubmissionResult)
def submit_homework(
    data: SubmissionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create or overwrite the caller's submission for an assignment."""
    if not current_user.has_role(UserRole.STUDENT):
        raise HTTPException(status_code=403, detail="Only students can submit homework")
    if not data.content and not data.attachment_url:
        raise HTTPException(status_code=400, detail="Submission content or an attachment is required")

    assignment = db.query(HomeworkAssignment).filter(HomeworkAssignment.id == data.assignment_id).first()
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    if not assignment.is_published:
        raise HTTPException(status_code=403, detail="This assignment has not been published")
    if not is_class_member(db, current_user, assignment.class_id):
        raise HTTPException(status_code=403, detail="You are not a member of this class")

    now = utcnow()
    is_late = now > as_utc(assignment.due_date)
    if is_late and not assignment.allow_late_submission:
        raise HTTPException(status_code=403, detail="The due date has passed and late submissions are not allowed")

    if assignment.submission_format == SubmissionFormat.TEXT.value and not data.content:
        raise HTTPException(status_code=400, detail="This assignment requires a text submission")
    if assignment.submission_format == SubmissionFormat.FILE.value and not data.attachment_url:
        raise HTTPException(status_code=400, detail="This assignment requires a file submission")

    submission = db.query(HomeworkSubmission).filter(
        HomeworkSubmission.assignment_id == assignment.id,
        HomeworkSubmission.student_id == current_user.id,
    ).first()
    created = submission is None
    if created:
        submission = HomeworkSubmission(assignment_id=assignment.id, student_id=current_user.id)
        db.add(submission)

    submission.content = data.content
    submission.attachment_url = data.attachment_url or None
    submission.attachment_name = data.attachment_name or None
    submission.submitted_at = now
    submission.is_late = is_late
    submission.status = SubmissionStatus.SUBMITTED.value
    db.commit()
    db.refresh(submission)

    if is_late:
        logger.info(f"Late submission {submission.id} for assignment {assignment.id} by student {current_user.id}")
    return SubmissionResult(
        submission=SubmissionResponse.model_validate(submission),
        created=created,
        message="Homework submitted" if created else "Submission updated",
    )


# ── Grades ────────────────────────────────────────────────────────


@router.post("/grades", response_model=GradeResult)
def grade_submission(
    data: GradeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    submission = db.query(HomeworkSubmission).filter(HomeworkSubmission.id == data.submission_id).first()
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")

    assignment = submission.assignment
    if assignment.teacher_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the assignment's teacher can grade it")
    if not 0 <= data.points_earned <= assignment.points_possible:
        raise HTTPException(
            status_code=400,
            detail=f"Points must be between 0 and {assignment.points_possible}",
        )

    grade = db.query(HomeworkGrade).filter(HomeworkGrade.submission_id == submission.id).first()
    created = grade is None
    if created:
        grade = HomeworkGrade(submission_id=submission.id)
        db.add(grade)
    grade.teacher_id = current_user.id
    grade.points_earned = data.points_earned
    grade.feedback = data.feedback
    grade.graded_at = utcnow()
    submission.status = SubmissionStatus.GRADED.value
    db.commit()
    db.refresh(grade)

    return GradeResult(
        grade=GradeResponse.model_validate(grade),
        created=created,
        message="Grade saved" if created else "Grade updated",
    )
