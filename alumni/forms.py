from django import forms
from django.utils import timezone

from .models import (
    Announcement, Blog, ChatMessage, Feedback, Job, JobApplication, MentorshipProgram, User, Workshop,
    WorkshopAttendee,
)
from .utils import ListField
from .validators import ImageValidationMixin, validate_graduation_year


class RegisterForm(forms.Form):
    REQUIRED = "Please provide name, email, password, and role"

    name = forms.CharField(max_length=100, error_messages={"required": REQUIRED})
    email = forms.EmailField(error_messages={"required": REQUIRED, "invalid": "Please provide a valid email"})
    password = forms.CharField(error_messages={"required": REQUIRED})
    role = forms.CharField(error_messages={"required": REQUIRED})
    graduation_year = forms.IntegerField(required=False)
    major = forms.CharField(max_length=150, required=False)
    bio = forms.CharField(max_length=500, required=False)
    phone = forms.CharField(max_length=30, required=False)
    location = forms.CharField(max_length=150, required=False)

    def clean_email(self):
        email = self.cleaned_data["email"].lower()
        if User.objects.filter(email=email).exists():
            raise forms.ValidationError("User already exists")
        return email

    def clean_password(self):
        password = self.cleaned_data["password"]
        if len(password) < 6:
            raise forms.ValidationError("Password must be at least 6 characters long")
        return password

    def clean_role(self):
        role = self.cleaned_data["role"]
        if role == User.ADMIN:
            raise forms.ValidationError("Admin registration not allowed")
        if role not in (User.ALUMNI, User.STUDENT):
            raise forms.ValidationError("Invalid role. Must be alumni or student")
        return role

    def clean_graduation_year(self):
        year = self.cleaned_data.get("graduation_year")
        validate_graduation_year(year, timezone.now().year)
        return year

    def clean(self):
        cleaned = super().clean()
        if cleaned.get("role") in (User.ALUMNI, User.STUDENT):
            if not cleaned.get("graduation_year") or not cleaned.get("major"):
                raise forms.ValidationError("Graduation year and major are required for alumni and students")
        return cleaned


class LoginForm(forms.Form):
    REQUIRED = "Please provide email and password"

    email = forms.CharField(error_messages={"required": REQUIRED})
    password = forms.CharField(error_messages={"required": REQUIRED})


class ProfileForm(forms.ModelForm):
    class Meta:
        model = User
        fields = ["name", "bio", "phone", "location", "graduation_year", "major", "profile_image", "social_links"]

    def clean_graduation_year(self):
        year = self.cleaned_data.get("graduation_year")
        validate_graduation_year(year, timezone.now().year)
        return year

    def clean_social_links(self):
        links = self.cleaned_data.get("social_links") or {}
        if not isinstance(links, dict):
            raise forms.ValidationError("socialLinks must be an object")
        allowed = ("linkedin", "twitter", "github", "website")
        return {key: value for key, value in links.items() if key in allowed and value}


class ApprovalForm(forms.Form):
    reason = forms.CharField(required=False)

    def __init__(self, data, **kwargs):
        super().__init__(data, **kwargs)
        self.raw_approved = data.get("is_approved")

    def clean(self):
        cleaned = super().clean()
        if not isinstance(self.raw_approved, bool):
            raise forms.ValidationError("isApproved must be a boolean value")
        cleaned["is_approved"] = self.raw_approved
        return cleaned


class JobForm(forms.ModelForm):
    salary_currency = forms.CharField(max_length=3, required=False)
    requirements = ListField(required=False)
    skills = ListField(required=False)

    class Meta:
        model = Job
        fields = [
            "title", "description", "company", "location", "type", "salary_min", "salary_max",
            "salary_currency", "requirements", "skills", "is_active", "deadline",
        ]

    def clean(self):
        cleaned = super().clean()
        low, high = cleaned.get("salary_min"), cleaned.get("salary_max")
        if low is not None and high is not None and high < low:
            self.add_error("salary_max", "Maximum salary must be greater than minimum salary")
        if not cleaned.get("salary_currency"):
            cleaned["salary_currency"] = "USD"
        return cleaned


class ApplicationForm(forms.Form):
    resume = forms.CharField(max_length=500, required=False)
    cover_letter = forms.CharField(required=False)


class ApplicationStatusForm(forms.Form):
    status = forms.ChoiceField(
        choices=JobApplication.STATUS_CHOICES,
        error_messages={"invalid_choice": "Invalid status", "required": "Status is required"},
    )


class WorkshopForm(forms.ModelForm):
    location_type = forms.ChoiceField(choices=Workshop.LOCATION_CHOICES, required=False)
    tags = ListField(required=False)
    materials = forms.JSONField(required=False)

    class Meta:
        model = Workshop
        fields = [
            "topic", "description", "date", "duration", "location_type", "address", "online_link",
            "capacity", "category", "tags", "materials", "is_active", "registration_deadline",
        ]

    def clean_duration(self):
        duration = self.cleaned_data.get("duration")
        if duration is None or not 15 <= duration <= 480:
            raise forms.ValidationError("Duration must be between 15 and 480 minutes")
        return duration

    def clean_capacity(self):
        capacity = self.cleaned_data.get("capacity")
        if capacity is None or capacity < 1:
            raise forms.ValidationError("Capacity must be a positive number")
        return capacity

    def clean_materials(self):
        materials = self.cleaned_data.get("materials") or []
        if not isinstance(materials, list):
            raise forms.ValidationError("Materials must be a list")
        kinds = ("document", "video", "presentation", "link")
        for item in materials:
            if not isinstance(item, dict) or not item.get("title") or not item.get("url"):
                raise forms.ValidationError("Each material needs a title and a url")
            if item.get("type", "link") not in kinds:
                raise forms.ValidationError("Invalid material type")
        return materials

    def clean(self):
        cleaned = super().clean()
        location_type = cleaned.get("location_type") or "online"
        if location_type in ("in-person", "hybrid") and not cleaned.get("address"):
            self.add_error("address", "Location address is required for in-person workshops")
        if location_type in ("online", "hybrid") and not cleaned.get("online_link"):
            self.add_error("online_link", "Meeting link is required for online workshops")
        return cleaned


class AttendeeStatusForm(forms.Form):
    status = forms.ChoiceField(
        choices=WorkshopAttendee.STATUS_CHOICES,
        error_messages={"invalid_choice": "Invalid status", "required": "Status is required"},
    )


class BlogForm(forms.ModelForm):
    category = forms.ChoiceField(choices=Blog.CATEGORY_CHOICES, required=False)
    status = forms.ChoiceField(choices=Blog.STATUS_CHOICES, required=False)
    tags = ListField(required=False)
    seo = forms.JSONField(required=False)

    class Meta:
        model = Blog
        fields = [
            "title", "content", "excerpt", "image_url", "tags", "category", "status", "read_time", "seo",
            "is_featured", "allow_comments",
        ]
        error_messages = {
            "title": {"required": "Title and content are required"},
            "content": {"required": "Title and content are required"},
        }

    def clean_seo(self):
        seo = self.cleaned_data.get("seo") or {}
        if not isinstance(seo, dict):
            raise forms.ValidationError("seo must be an object")
        return seo


class CommentForm(forms.Form):
    content = forms.CharField(max_length=1000, error_messages={"required": "Comment content is required"})


class CommentModerationForm(forms.Form):
    action = forms.ChoiceField(choices=[("approve", "Approve"), ("delete", "Delete")])


class FeedbackForm(forms.ModelForm):
    category = forms.ChoiceField(choices=Feedback.CATEGORY_CHOICES, required=False)
    tags = ListField(required=False)
    attachments = forms.JSONField(required=False)

    class Meta:
        model = Feedback
        fields = [
            "event_type", "event_id", "event_model", "rating", "comments", "category", "tags", "is_anonymous",
            "is_public", "attachments",
        ]

    def clean_rating(self):
        rating = self.cleaned_data.get("rating")
        if rating is None or not 1 <= rating <= 5:
            raise forms.ValidationError("Rating must be between 1 and 5")
        return rating

    def clean(self):
        cleaned = super().clean()
        event_id, event_model = cleaned.get("event_id"), cleaned.get("event_model")
        if event_id and not event_model:
            self.add_error("event_model", "eventModel is required when eventId is given")
        elif event_id and event_model:
            model = {"Workshop": Workshop, "Job": Job, "Blog": Blog}[event_model]
            if not model.objects.filter(pk=event_id).exists():
                self.add_error("event_id", f"{event_model} not found")
        if cleaned.get("attachments") is None:
            cleaned["attachments"] = []
        return cleaned


class FeedbackStatusForm(forms.Form):
    status = forms.ChoiceField(choices=Feedback.STATUS_CHOICES, error_messages={"invalid_choice": "Invalid status"})


class FeedbackResponseForm(forms.Form):
    response = forms.CharField(max_length=2000, error_messages={"required": "Response is required"})


class MentorshipRequestForm(forms.Form):
    mentor_id = forms.IntegerField(error_messages={"required": "Mentor is required", "invalid": "Mentor not found"})
    message = forms.CharField(max_length=500, required=False)


class MentorshipResponseForm(forms.Form):
    status = forms.CharField()
    response = forms.CharField(max_length=500, required=False)


class ProgramForm(forms.ModelForm):
    max_mentees = forms.IntegerField(required=False)

    class Meta:
        model = MentorshipProgram
        fields = ["title", "description", "max_mentees", "is_active"]
        error_messages = {
            "title": {"required": "Title and description are required"},
            "description": {"required": "Title and description are required"},
        }

    def clean_max_mentees(self):
        value = self.cleaned_data.get("max_mentees")
        if value is None:
            return 10
        if value < 1:
            raise forms.ValidationError("Max mentees must be at least 1")
        return value


class JoinRequestForm(forms.Form):
    message = forms.CharField(max_length=500, required=False)


class AnnouncementForm(forms.ModelForm):
    priority = forms.ChoiceField(choices=Announcement.PRIORITY_CHOICES, required=False)
    status = forms.CharField(required=False)
    target_audience = ListField(required=False)

    class Meta:
        model = Announcement
        fields = ["title", "content", "status", "priority", "target_audience", "expires_at", "is_pinned"]
        error_messages = {
            "title": {"required": "Title and content are required"},
            "content": {"required": "Title and content are required"},
        }

    def clean_status(self):
        status = (self.cleaned_data.get("status") or "").lower()
        return status if status in Announcement.STATUSES else "draft"

    def clean_target_audience(self):
        audience = [a.lower() for a in self.cleaned_data.get("target_audience") or []]
        audience = ["student" if a == "students" else a for a in audience]
        unknown = [a for a in audience if a not in Announcement.AUDIENCES]
        if unknown:
            raise forms.ValidationError(f"Invalid target audience: {', '.join(unknown)}")
        return audience or ["all"]


class ChatMessageForm(forms.Form):
    content = forms.CharField(error_messages={"required": "Message content is required"})
    message_type = forms.ChoiceField(choices=ChatMessage.TYPE_CHOICES, required=False)
    file_url = forms.CharField(max_length=500, required=False)
    file_name = forms.CharField(max_length=255, required=False)

    def clean_content(self):
        content = self.cleaned_data["content"].strip()
        if not content:
            raise forms.ValidationError("Message content is required")
        return content


class ImageUploadForm(ImageValidationMixin, forms.Form):
    image = forms.FileField(required=False)
