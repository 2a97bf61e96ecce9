import math

from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


def bump_version(model, pk):
    """Mark an aggregate as changed when one of its child rows changes."""
    model.objects.filter(pk=pk).update(version=F("version") + 1, updated_at=timezone.now())


class VersionedModel(models.Model):
    """Aggregate root. `version` grows by one on every write and travels with realtime events."""
    version = models.PositiveIntegerField(default=0, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self._state.adding:
            self.version = 1
            super().save(*args, **kwargs)
            return

        self.version = F("version") + 1
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = set(update_fields) | {"version", "updated_at"}
        super().save(*args, **kwargs)
        self.refresh_from_db(fields=["version"])


class AggregateChild(models.Model):
    """Row that belongs to an aggregate; writes bump the parent's version."""
    aggregate_field = None
    document_key = None

    class Meta:
        abstract = True

    def aggregate_key(self):
        field = self._meta.get_field(self.aggregate_field)
        return field.related_model, getattr(self, field.attname)

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        bump_version(*self.aggregate_key())

    def delete(self, *args, **kwargs):
        model, pk = self.aggregate_key()
        result = super().delete(*args, **kwargs)
        bump_version(model, pk)
        return result


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The email address must be set")
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", User.ADMIN)
        extra_fields.setdefault("is_approved", True)
        return self._create_user(email, password, **extra_fields)


class User(VersionedModel, AbstractUser):
    ADMIN = "admin"
    ALUMNI = "alumni"
    STUDENT = "student"

    ROLE_CHOICES = [
        (ADMIN, "Admin"),
        (ALUMNI, "Alumni"),
        (STUDENT, "Student"),
    ]

    username = None
    first_name = None
    last_name = None

    name = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=STUDENT)
    is_approved = models.BooleanField(default=False)
    approval_reason = models.TextField(blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    profile_image = models.CharField(max_length=500, blank=True)
    graduation_year = models.PositiveIntegerField(null=True, blank=True)
    major = models.CharField(max_length=150, blank=True)
    bio = models.CharField(max_length=500, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    location = models.CharField(max_length=150, blank=True)
    social_links = models.JSONField(default=dict, blank=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["name"]

    objects = UserManager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} <{self.email}>"

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.lower()
        if self.is_approved and self.approved_at is None:
            self.approved_at = timezone.now()
        super().save(*args, **kwargs)

    @property
    def is_admin(self):
        return self.role == self.ADMIN or self.is_superuser

    @property
    def can_authenticate(self):
        return self.is_active and (self.is_admin or self.is_approved)

    def has_role(self, *roles):
        return self.role in roles


class Job(VersionedModel):
    TYPE_CHOICES = [
        ("full-time", "Full-time"),
        ("part-time", "Part-time"),
        ("internship", "Internship"),
        ("contract", "Contract"),
    ]

    title = models.CharField(max_length=200)
    description = models.TextField()
    company = models.CharField(max_length=200)
    location = models.CharField(max_length=200)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    salary_min = models.PositiveIntegerField(null=True, blank=True)
    salary_max = models.PositiveIntegerField(null=True, blank=True)
    salary_currency = models.CharField(max_length=3, default="USD")
    requirements = models.JSONField(default=list, blank=True)
    skills = models.JSONField(default=list, blank=True)
    posted_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="jobs")
    is_active = models.BooleanField(default=True)
    deadline = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.title} @ {self.company}"


class JobApplication(AggregateChild):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("reviewed", "Reviewed"),
        ("shortlisted", "Shortlisted"),
        ("rejected", "Rejected"),
        ("accepted", "Accepted"),
        ("hired", "Hired"),
    ]
    STATUSES = [value for value, _ in STATUS_CHOICES]

    aggregate_field = "job"
    document_key = "applicants"

    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name="applications")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="job_applications")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    resume = models.CharField(max_length=500, blank=True)
    cover_letter = models.TextField(blank=True)
    applied_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["applied_at"]
        constraints = [
            models.UniqueConstraint(fields=["job", "user"], name="unique_job_application"),
        ]


class Workshop(VersionedModel):
    LOCATION_CHOICES = [
        ("online", "Online"),
        ("in-person", "In person"),
        ("hybrid", "Hybrid"),
    ]

    CATEGORY_CHOICES = [
        ("career", "Career"),
        ("technical", "Technical"),
        ("soft-skills", "Soft skills"),
        ("networking", "Networking"),
        ("industry", "Industry"),
        ("other", "Other"),
    ]

    topic = models.CharField(max_length=200)
    description = models.TextField()
    host = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="hosted_workshops")
    date = models.DateTimeField()
    duration = models.PositiveIntegerField(validators=[MinValueValidator(15), MaxValueValidator(480)])
    location_type = models.CharField(max_length=20, choices=LOCATION_CHOICES, default="online")
    address = models.CharField(max_length=300, blank=True)
    online_link = models.URLField(blank=True)
    capacity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    tags = models.JSONField(default=list, blank=True)
    materials = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    registration_deadline = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["date"]

    def __str__(self):
        return self.topic

    def active_attendees(self):
        return self.attendees.exclude(status="cancelled")


class WorkshopAttendee(AggregateChild):
    STATUS_CHOICES = [
        ("registered", "Registered"),
        ("attended", "Attended"),
        ("no-show", "No show"),
        ("cancelled", "Cancelled"),
    ]
    STATUSES = [value for value, _ in STATUS_CHOICES]

    aggregate_field = "workshop"
    document_key = "attendees"

    workshop = models.ForeignKey(Workshop, on_delete=models.CASCADE, related_name="attendees")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="workshop_registrations")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="registered")
    registered_at = models.DateTimeField(auto_now_add=True)
    feedback_rating = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    feedback_comment = models.TextField(blank=True)

    class Meta:
        ordering = ["registered_at"]
        constraints = [
            models.UniqueConstraint(fields=["workshop", "user"], name="unique_workshop_attendee"),
        ]


WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 200


def estimated_read_time(content):
    words = len((content or "").split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


class Blog(VersionedModel):
    CATEGORY_CHOICES = [
        ("career", "Career"),
        ("technology", "Technology"),
        ("industry", "Industry"),
        ("alumni-spotlight", "Alumni spotlight"),
        ("tips", "Tips"),
        ("news", "News"),
        ("other", "Other"),
    ]

    STATUS_CHOICES = [
        ("draft", "Draft"),
        ("published", "Published"),
        ("archived", "Archived"),
    ]

    title = models.CharField(max_length=200)
    content = models.TextField()
    excerpt = models.CharField(max_length=EXCERPT_LENGTH + 3, blank=True)
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="blogs")
    image_url = models.CharField(max_length=500, blank=True)
    tags = models.JSONField(default=list, blank=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default="other")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="draft")
    published_at = models.DateTimeField(null=True, blank=True)
    read_time = models.PositiveIntegerField(null=True, blank=True)
    views = models.PositiveIntegerField(default=0)
    seo = models.JSONField(default=dict, blank=True)
    is_featured = models.BooleanField(default=False)
    allow_comments = models.BooleanField(default=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if self.status == "published" and self.published_at is None:
            self.published_at = timezone.now()
        if not self.excerpt and self.content:
            self.excerpt = self.content[:EXCERPT_LENGTH] + ("..." if len(self.content) > EXCERPT_LENGTH else "")
        if not self.read_time:
            self.read_time = estimated_read_time(self.content)
        super().save(*args, **kwargs)


class BlogLike(AggregateChild):
    aggregate_field = "blog"
    document_key = "likes"

    blog = models.ForeignKey(Blog, on_delete=models.CASCADE, related_name="likes")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="blog_likes")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["blog", "user"], name="unique_blog_like"),
        ]


class BlogComment(AggregateChild):
    aggregate_field = "blog"
    document_key = "comments"

    blog = models.ForeignKey(Blog, on_delete=models.CASCADE, related_name="comments")
    parent = models.ForeignKey("self", on_delete=models.CASCADE, null=True, blank=True, related_name="replies")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="blog_comments")
    content = models.CharField(max_length=1000)
    is_approved = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]


class Feedback(VersionedModel):
    EVENT_TYPE_CHOICES = [
        ("workshop", "Workshop"),
        ("job", "Job"),
        ("blog", "Blog"),
        ("platform", "Platform"),
        ("mentorship", "Mentorship"),
        ("event", "Event"),
        ("other", "Other"),
    ]

    EVENT_MODEL_CHOICES = [
        ("Workshop", "Workshop"),
        ("Job", "Job"),
        ("Blog", "Blog"),
    ]

    CATEGORY_CHOICES = [
        ("general", "General"),
        ("technical", "Technical"),
        ("content", "Content"),
        ("user-experience", "User experience"),
        ("support", "Support"),
        ("suggestion", "Suggestion"),
    ]

    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("reviewed", "Reviewed"),
        ("addressed", "Addressed"),
        ("closed", "Closed"),
    ]
    STATUSES = [value for value, _ in STATUS_CHOICES]

    PRIORITY_CHOICES = [
        ("low", "Low"),
        ("medium", "Medium"),
        ("high", "High"),
        ("critical", "Critical"),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="feedback")
    event_type = models.CharField(max_length=20, choices=EVENT_TYPE_CHOICES)
    event_id = models.PositiveBigIntegerField(null=True, blank=True)
    event_model = models.CharField(max_length=20, choices=EVENT_MODEL_CHOICES, blank=True)
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comments = models.CharField(max_length=1000, blank=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default="general")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default="medium")
    admin_response = models.TextField(blank=True)
    responded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="feedback_responses"
    )
    responded_at = models.DateTimeField(null=True, blank=True)
    tags = models.JSONField(default=list, blank=True)
    is_anonymous = models.BooleanField(default=False)
    is_public = models.BooleanField(default=False)
    attachments = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "feedback"
        indexes = [
            models.Index(fields=["event_type", "event_id"]),
            models.Index(fields=["status", "priority"]),
        ]

    def __str__(self):
        return f"{self.event_type} feedback ({self.rating}/5)"

    @staticmethod
    def priority_for(rating):
        if rating <= 2:
            return "high"
        if rating <= 3:
            return "medium"
        return "low"

    def save(self, *args, **kwargs):
        self.priority = self.priority_for(self.rating)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = set(update_fields) | {"priority"}
        super().save(*args, **kwargs)


class FeedbackHelpful(AggregateChild):
    aggregate_field = "feedback"
    document_key = "helpful"

    feedback = models.ForeignKey(Feedback, on_delete=models.CASCADE, related_name="helpful_marks")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="helpful_marks")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["feedback", "user"], name="unique_feedback_helpful"),
        ]


class Mentorship(VersionedModel):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (ACCEPTED, "Accepted"),
        (REJECTED, "Rejected"),
        (COMPLETED, "Completed"),
        (CANCELLED, "Cancelled"),
    ]

    OPEN_STATUSES = (PENDING, ACCEPTED)
    TERMINAL_STATUSES = (REJECTED, COMPLETED, CANCELLED)

    mentor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="mentorships_as_mentor")
    mentee = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="mentorships_as_mentee")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    message = models.CharField(max_length=500, blank=True)
    mentor_response = models.CharField(max_length=500, blank=True)
    requested_at = models.DateTimeField(auto_now_add=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-requested_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["mentor", "mentee"],
                condition=Q(status__in=["pending", "accepted"]),
                name="unique_open_mentorship",
            ),
        ]

    def __str__(self):
        return f"{self.mentor_id} -> {self.mentee_id} ({self.status})"

    def save(self, *args, **kwargs):
        if self.status == self.ACCEPTED and self.accepted_at is None:
            self.accepted_at = timezone.now()
        if self.status == self.COMPLETED and self.completed_at is None:
            self.completed_at = timezone.now()
        if self.status in self.TERMINAL_STATUSES:
            self.is_active = False
        super().save(*args, **kwargs)


class MentorshipProgram(VersionedModel):
    mentor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="mentorship_programs")
    title = models.CharField(max_length=200)
    description = models.TextField()
    max_mentees = models.PositiveIntegerField(default=10, validators=[MinValueValidator(1)])
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.title


class ProgramMembership(AggregateChild):
    aggregate_field = "program"
    document_key = "mentees"

    program = models.ForeignKey(MentorshipProgram, on_delete=models.CASCADE, related_name="memberships")
    mentee = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="program_memberships")
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["joined_at"]
        constraints = [
            models.UniqueConstraint(fields=["program", "mentee"], name="unique_program_membership"),
        ]


class ProgramRequest(AggregateChild):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("accepted", "Accepted"),
        ("rejected", "Rejected"),
    ]

    aggregate_field = "program"
    document_key = "requests"

    program = models.ForeignKey(MentorshipProgram, on_delete=models.CASCADE, related_name="requests")
    mentee = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="program_requests")
    message = models.CharField(max_length=500, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    requested_at = models.DateTimeField(auto_now_add=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["requested_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["program", "mentee"],
                condition=Q(status="pending"),
                name="unique_pending_program_request",
            ),
        ]


class Announcement(VersionedModel):
    STATUS_CHOICES = [
        ("draft", "Draft"),
        ("published", "Published"),
        ("archived", "Archived"),
    ]
    STATUSES = [value for value, _ in STATUS_CHOICES]

    PRIORITY_CHOICES = [
        ("low", "Low"),
        ("medium", "Medium"),
        ("high", "High"),
        ("urgent", "Urgent"),
    ]

    AUDIENCES = ["all", "alumni", "student", "admin"]

    title = models.CharField(max_length=200)
    content = models.TextField()
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="announcements"
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="draft")
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default="medium")
    target_audience = models.JSONField(default=list, blank=True)
    published_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    is_pinned = models.BooleanField(default=False)
    views = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-is_pinned", "-published_at", "-created_at"]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if not self.target_audience:
            self.target_audience = ["all"]
        if self.status == "published" and self.published_at is None:
            self.published_at = timezone.now()
        super().save(*args, **kwargs)

    @property
    def is_active(self):
        return self.status == "published" and (self.expires_at is None or self.expires_at > timezone.now())


class Chat(VersionedModel):
    mentor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="chats_as_mentor")
    mentee = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="chats_as_mentee")
    pair_key = models.CharField(max_length=64, unique=True, editable=False)
    is_active = models.BooleanField(default=True)
    last_message = models.DateTimeField(null=True, blank=True)
    mentor_unread = models.PositiveIntegerField(default=0)
    mentee_unread = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-last_message", "-updated_at"]

    def __str__(self):
        return f"chat {self.pair_key}"

    @staticmethod
    def key_for(first_id, second_id):
        low, high = sorted([int(first_id), int(second_id)])
        return f"{low}:{high}"

    def save(self, *args, **kwargs):
        if not self.pair_key:
            self.pair_key = self.key_for(self.mentor_id, self.mentee_id)
        super().save(*args, **kwargs)

    def is_participant(self, user):
        return user.pk in (self.mentor_id, self.mentee_id)

    def other_participant_id(self, user):
        return self.mentee_id if user.pk == self.mentor_id else self.mentor_id

    def unread_field_for(self, user):
        return "mentor_unread" if user.pk == self.mentor_id else "mentee_unread"

    def unread_for(self, user):
        return getattr(self, self.unread_field_for(user))


class ChatMessage(AggregateChild):
    TYPE_CHOICES = [
        ("text", "Text"),
        ("image", "Image"),
        ("file", "File"),
        ("system", "System"),
    ]

    aggregate_field = "chat"
    document_key = "messages"

    chat = models.ForeignKey(Chat, on_delete=models.CASCADE, related_name="messages")
    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="chat_messages")
    content = models.TextField()
    message_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default="text")
    file_url = models.CharField(max_length=500, blank=True)
    file_name = models.CharField(max_length=255, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
