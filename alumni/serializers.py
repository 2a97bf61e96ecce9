"""
JSON documents for every aggregate.

Documents use `_id` plus camelCase keys. Derived values (counts, spots,
read time, active flags) are computed here from stored fields and are
never persisted.
"""
from django.utils import timezone

from .models import estimated_read_time


def iso(value):
    return value.isoformat() if value else None


def to_camel(name):
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def column_key(column):
    """Map a database column to its document key (`posted_by_id` -> `postedBy`)."""
    if column == "id":
        return "_id"
    if column.endswith("_id"):
        column = column[:-3]
    return to_camel(column)


def user_summary(user):
    if user is None:
        return None
    return {
        "_id": user.pk,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "profileImage": user.profile_image or None,
    }


def serialize_user(user):
    return {
        "_id": user.pk,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "isApproved": user.is_approved,
        "isActive": user.is_active,
        "approvalReason": user.approval_reason,
        "approvedAt": iso(user.approved_at),
        "profileImage": user.profile_image or None,
        "graduationYear": user.graduation_year,
        "major": user.major,
        "bio": user.bio,
        "phone": user.phone,
        "location": user.location,
        "socialLinks": user.social_links or {},
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
        "version": user.version,
    }


# Jobs

def serialize_application(application):
    return {
        "_id": application.pk,
        "user": user_summary(application.user),
        "status": application.status,
        "resume": application.resume or None,
        "coverLetter": application.cover_letter,
        "appliedAt": iso(application.applied_at),
    }


def serialize_job(job, include_applicants=True):
    applications = list(job.applications.select_related("user")) if include_applicants else []
    document = {
        "_id": job.pk,
        "title": job.title,
        "description": job.description,
        "company": job.company,
        "location": job.location,
        "type": job.type,
        "salary": {
            "min": job.salary_min,
            "max": job.salary_max,
            "currency": job.salary_currency,
        },
        "requirements": job.requirements,
        "skills": job.skills,
        "postedBy": user_summary(job.posted_by),
        "isActive": job.is_active,
        "deadline": iso(job.deadline),
        "applicantCount": len(applications) if include_applicants else job.applications.count(),
        "createdAt": iso(job.created_at),
        "updatedAt": iso(job.updated_at),
        "version": job.version,
    }
    if include_applicants:
        document["applicants"] = [serialize_application(a) for a in applications]
    return document


# Workshops

def workshop_availability(capacity, attendee_count, is_active, registration_deadline, now=None):
    """Derived seat and registration state for a workshop."""
    now = now or timezone.now()
    available = max(capacity - attendee_count, 0)
    is_full = attendee_count >= capacity
    deadline_open = registration_deadline is None or now < registration_deadline
    return {
        "attendeeCount": attendee_count,
        "availableSpots": available,
        "isFull": is_full,
        "registrationOpen": bool(is_active and not is_full and deadline_open),
    }


def serialize_attendee(attendee):
    return {
        "_id": attendee.pk,
        "user": user_summary(attendee.user),
        "status": attendee.status,
        "registeredAt": iso(attendee.registered_at),
        "feedback": {
            "rating": attendee.feedback_rating,
            "comment": attendee.feedback_comment,
        },
    }


def serialize_workshop(workshop, include_attendees=True):
    attendees = list(workshop.attendees.select_related("user"))
    active_count = sum(1 for a in attendees if a.status != "cancelled")
    document = {
        "_id": workshop.pk,
        "topic": workshop.topic,
        "description": workshop.description,
        "host": user_summary(workshop.host),
        "date": iso(workshop.date),
        "duration": workshop.duration,
        "location": {
            "type": workshop.location_type,
            "address": workshop.address or None,
            "onlineLink": workshop.online_link or None,
        },
        "capacity": workshop.capacity,
        "category": workshop.category,
        "tags": workshop.tags,
        "materials": workshop.materials,
        "isActive": workshop.is_active,
        "registrationDeadline": iso(workshop.registration_deadline),
        "createdAt": iso(workshop.created_at),
        "updatedAt": iso(workshop.updated_at),
        "version": workshop.version,
    }
    document.update(workshop_availability(
        workshop.capacity, active_count, workshop.is_active, workshop.registration_deadline
    ))
    if include_attendees:
        document["attendees"] = [serialize_attendee(a) for a in attendees]
    return document


# Blogs

def serialize_comment(comment, approved_only=False):
    replies = [r for r in comment.replies.all() if r.is_approved or not approved_only]
    return {
        "_id": comment.pk,
        "user": user_summary(comment.user),
        "content": comment.content,
        "isApproved": comment.is_approved,
        "createdAt": iso(comment.created_at),
        "replies": [serialize_comment(r, approved_only) for r in replies],
    }


def serialize_blog(blog, approved_comments_only=False):
    comments = list(
        blog.comments.filter(parent__isnull=True).select_related("user").prefetch_related("replies__user")
    )
    visible = [c for c in comments if c.is_approved or not approved_comments_only]
    likes = list(blog.likes.values_list("user_id", flat=True))
    return {
        "_id": blog.pk,
        "title": blog.title,
        "content": blog.content,
        "excerpt": blog.excerpt,
        "author": user_summary(blog.author),
        "imageUrl": blog.image_url or None,
        "tags": blog.tags,
        "category": blog.category,
        "status": blog.status,
        "publishedAt": iso(blog.published_at),
        "readTime": blog.read_time,
        "estimatedReadTime": estimated_read_time(blog.content),
        "views": blog.views,
        "likes": likes,
        "likeCount": len(likes),
        "comments": [serialize_comment(c, approved_comments_only) for c in visible],
        "commentCount": len(comments),
        "approvedCommentCount": sum(1 for c in comments if c.is_approved),
        "seo": blog.seo or {},
        "isFeatured": blog.is_featured,
        "allowComments": blog.allow_comments,
        "createdAt": iso(blog.created_at),
        "updatedAt": iso(blog.updated_at),
        "version": blog.version,
    }


# Feedback

def serialize_feedback(feedback, hide_identity=False):
    helpful = list(feedback.helpful_marks.values_list("user_id", flat=True))
    anonymous = hide_identity and feedback.is_anonymous
    return {
        "_id": feedback.pk,
        "user": None if anonymous else user_summary(feedback.user),
        "eventType": feedback.event_type,
        "eventId": feedback.event_id,
        "eventModel": feedback.event_model or None,
        "rating": feedback.rating,
        "comments": feedback.comments,
        "category": feedback.category,
        "status": feedback.status,
        "priority": feedback.priority,
        "adminResponse": {
            "admin": user_summary(feedback.responded_by),
            "response": feedback.admin_response,
            "respondedAt": iso(feedback.responded_at),
        } if feedback.admin_response else None,
        "tags": feedback.tags,
        "isAnonymous": feedback.is_anonymous,
        "isPublic": feedback.is_public,
        "helpful": helpful,
        "helpfulCount": len(helpful),
        "attachments": feedback.attachments,
        "createdAt": iso(feedback.created_at),
        "updatedAt": iso(feedback.updated_at),
        "version": feedback.version,
    }


# Mentorship

def serialize_mentorship(mentorship):
    return {
        "_id": mentorship.pk,
        "mentor": user_summary(mentorship.mentor),
        "mentee": user_summary(mentorship.mentee),
        "status": mentorship.status,
        "message": mentorship.message,
        "mentorResponse": mentorship.mentor_response,
        "requestedAt": iso(mentorship.requested_at),
        "acceptedAt": iso(mentorship.accepted_at),
        "completedAt": iso(mentorship.completed_at),
        "isActive": mentorship.is_active,
        "updatedAt": iso(mentorship.updated_at),
        "version": mentorship.version,
    }


def serialize_program(program):
    memberships = list(program.memberships.select_related("mentee"))
    requests = list(program.requests.select_related("mentee"))
    return {
        "_id": program.pk,
        "mentor": user_summary(program.mentor),
        "title": program.title,
        "description": program.description,
        "mentees": [
            {"_id": m.pk, "mentee": user_summary(m.mentee), "joinedAt": iso(m.joined_at)}
            for m in memberships
        ],
        "requests": [
            {
                "_id": r.pk,
                "mentee": user_summary(r.mentee),
                "message": r.message,
                "status": r.status,
                "requestedAt": iso(r.requested_at),
                "respondedAt": iso(r.responded_at),
            }
            for r in requests
        ],
        "menteeCount": len(memberships),
        "pendingRequestsCount": sum(1 for r in requests if r.status == "pending"),
        "maxMentees": program.max_mentees,
        "isActive": program.is_active,
        "createdAt": iso(program.created_at),
        "updatedAt": iso(program.updated_at),
        "version": program.version,
    }


# Announcements

def announcement_is_active(status, expires_at, now=None):
    now = now or timezone.now()
    return status == "published" and (expires_at is None or expires_at > now)


def serialize_announcement(announcement):
    return {
        "_id": announcement.pk,
        "title": announcement.title,
        "content": announcement.content,
        "author": user_summary(announcement.author),
        "status": announcement.status,
        "priority": announcement.priority,
        "targetAudience": announcement.target_audience,
        "publishedAt": iso(announcement.published_at),
        "expiresAt": iso(announcement.expires_at),
        "isPinned": announcement.is_pinned,
        "views": announcement.views,
        "isActive": announcement_is_active(announcement.status, announcement.expires_at),
        "createdAt": iso(announcement.created_at),
        "updatedAt": iso(announcement.updated_at),
        "version": announcement.version,
    }


# Chat

def serialize_message(message):
    return {
        "_id": message.pk,
        "chat": message.chat_id,
        "sender": user_summary(message.sender),
        "content": message.content,
        "messageType": message.message_type,
        "fileUrl": message.file_url or None,
        "fileName": message.file_name or None,
        "isRead": message.is_read,
        "readAt": iso(message.read_at),
        "createdAt": iso(message.created_at),
    }


def serialize_chat(chat, viewer=None, include_messages=False):
    document = {
        "_id": chat.pk,
        "mentor": user_summary(chat.mentor),
        "mentee": user_summary(chat.mentee),
        "isActive": chat.is_active,
        "lastMessage": iso(chat.last_message),
        "unreadCount": {"mentor": chat.mentor_unread, "mentee": chat.mentee_unread},
        "createdAt": iso(chat.created_at),
        "updatedAt": iso(chat.updated_at),
        "version": chat.version,
    }
    if viewer is not None:
        other = chat.mentee if viewer.pk == chat.mentor_id else chat.mentor
        latest = chat.messages.select_related("sender").order_by("-created_at").first()
        document["otherParticipant"] = user_summary(other)
        document["latestMessage"] = serialize_message(latest) if latest else None
        document["myUnreadCount"] = chat.unread_for(viewer)
    if include_messages:
        document["messages"] = [serialize_message(m) for m in chat.messages.select_related("sender")]
    return document
