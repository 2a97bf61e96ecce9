"""
Mentorship lifecycle.

1:1 mentorships move pending -> accepted|rejected and accepted ->
completed|cancelled; rejected, completed and cancelled are terminal.
A (mentor, mentee) pair has at most one pending or accepted mentorship,
backed by a partial unique constraint. A mentee may ask again once a
previous request was rejected or the relationship ended.

Program join requests follow the same idea: one pending request per
mentee and program, and acceptance re-checks capacity while holding a
row lock on the program so concurrent accepts cannot over-admit.
"""
import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from .errors import BadRequest, Forbidden, NotFound
from .models import Mentorship, MentorshipProgram, ProgramMembership, ProgramRequest, User

logger = logging.getLogger(__name__)

TRANSITIONS = {
    Mentorship.PENDING: (Mentorship.ACCEPTED, Mentorship.REJECTED),
    Mentorship.ACCEPTED: (Mentorship.COMPLETED, Mentorship.CANCELLED),
}

DUPLICATE_MESSAGE = "You already have a pending or active mentorship with this mentor"


class MentorshipError(BadRequest):
    pass


def can_transition(current, target):
    return target in TRANSITIONS.get(current, ())


def transition(mentorship, target):
    """Move `mentorship` to `target` in memory or raise MentorshipError."""
    current = mentorship.status
    if can_transition(current, target):
        mentorship.status = target
        return mentorship
    if current == target:
        raise MentorshipError(f"Mentorship request has already been {current}")
    if current in Mentorship.TERMINAL_STATUSES:
        raise MentorshipError(f"Mentorship is already {current}")
    raise MentorshipError(f"Cannot change mentorship status from {current} to {target}")


def request_mentorship(mentee, mentor_id, message=""):
    if not (mentee.role == User.STUDENT or mentee.is_admin):
        raise Forbidden("Only students can request mentorship")

    mentor = User.objects.filter(pk=mentor_id, role=User.ALUMNI, is_approved=True, is_active=True).first()
    if mentor is None:
        raise NotFound("Mentor not found")
    if mentor.pk == mentee.pk:
        raise MentorshipError("You cannot request mentorship from yourself")

    open_requests = Mentorship.objects.filter(mentor=mentor, mentee=mentee, status__in=Mentorship.OPEN_STATUSES)
    if open_requests.exists():
        raise MentorshipError(DUPLICATE_MESSAGE)

    try:
        with transaction.atomic():
            mentorship = Mentorship.objects.create(mentor=mentor, mentee=mentee, message=message or "")
    except IntegrityError:
        # a concurrent request for the same pair won
        raise MentorshipError(DUPLICATE_MESSAGE)

    logger.info("Mentorship %s requested by user %s", mentorship.pk, mentee.pk)
    return mentorship


def _locked_mentorship(mentorship_id):
    mentorship = (
        Mentorship.objects.select_for_update()
        .select_related("mentor", "mentee")
        .filter(pk=mentorship_id)
        .first()
    )
    if mentorship is None:
        raise NotFound("Mentorship request not found")
    return mentorship


def respond_to_request(mentorship_id, actor, status, response=""):
    if status not in (Mentorship.ACCEPTED, Mentorship.REJECTED):
        raise MentorshipError('Status must be "accepted" or "rejected"')

    with transaction.atomic():
        mentorship = _locked_mentorship(mentorship_id)
        if not (actor.is_admin or actor.pk == mentorship.mentor_id):
            raise Forbidden("Not authorized to respond to this request")
        transition(mentorship, status)
        if response:
            mentorship.mentor_response = response
        mentorship.save()

    logger.info("Mentorship %s %s by user %s", mentorship.pk, status, actor.pk)
    return mentorship


def complete_mentorship(mentorship_id, actor):
    with transaction.atomic():
        mentorship = _locked_mentorship(mentorship_id)
        if not (actor.is_admin or actor.pk == mentorship.mentor_id):
            raise Forbidden("Only the mentor can complete this mentorship")
        transition(mentorship, Mentorship.COMPLETED)
        mentorship.save()
    return mentorship


def cancel_mentorship(mentorship_id, actor):
    with transaction.atomic():
        mentorship = _locked_mentorship(mentorship_id)
        if not (actor.is_admin or actor.pk in (mentorship.mentor_id, mentorship.mentee_id)):
            raise Forbidden("Not authorized to cancel this mentorship")
        transition(mentorship, Mentorship.CANCELLED)
        mentorship.save()
    return mentorship


def update_status(mentorship_id, actor, status):
    if status == Mentorship.COMPLETED:
        return complete_mentorship(mentorship_id, actor)
    if status == Mentorship.CANCELLED:
        return cancel_mentorship(mentorship_id, actor)
    raise MentorshipError('Status must be "completed" or "cancelled"')


# Programs

def request_to_join(program_id, mentee, message=""):
    if mentee.role != User.STUDENT:
        raise Forbidden("Only students can request mentorship")

    program = MentorshipProgram.objects.filter(pk=program_id, is_active=True).first()
    if program is None:
        raise NotFound("Mentorship program not found or inactive")
    if program.memberships.filter(mentee=mentee).exists():
        raise MentorshipError("You are already a mentee in this program")
    if program.requests.filter(mentee=mentee, status="pending").exists():
        raise MentorshipError("You have already requested to join this program")
    if program.memberships.count() >= program.max_mentees:
        raise MentorshipError("Maximum mentees limit reached for this program")

    try:
        with transaction.atomic():
            join_request = ProgramRequest.objects.create(program=program, mentee=mentee, message=message or "")
    except IntegrityError:
        raise MentorshipError("You have already requested to join this program")
    return program, join_request


def respond_to_join_request(program_id, request_id, actor, status):
    if status not in ("accepted", "rejected"):
        raise MentorshipError('Status must be "accepted" or "rejected"')

    with transaction.atomic():
        # lock the program so capacity is checked and consumed in one step
        program = MentorshipProgram.objects.select_for_update().filter(pk=program_id).first()
        if program is None:
            raise NotFound("Mentorship program not found")
        if not (actor.is_admin or actor.pk == program.mentor_id):
            raise Forbidden("Not authorized to respond to this request")

        join_request = program.requests.select_for_update().filter(pk=request_id).first()
        if join_request is None:
            raise NotFound("Request not found")
        if join_request.status != "pending":
            raise MentorshipError(f"Request has already been {join_request.status}")

        if status == "accepted":
            if program.memberships.count() >= program.max_mentees:
                raise MentorshipError("Maximum mentees limit reached")
            ProgramMembership.objects.get_or_create(program=program, mentee_id=join_request.mentee_id)

        join_request.status = status
        join_request.responded_at = timezone.now()
        join_request.save()

    logger.info("Program %s request %s %s", program.pk, join_request.pk, status)
    return program, join_request
