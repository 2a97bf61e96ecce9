from django.contrib import admin
from django.contrib.auth.models import Group

from .models import (
    Announcement, Blog, BlogComment, Chat, ChatMessage, Feedback, Job, JobApplication, Mentorship,
    MentorshipProgram, ProgramRequest, User, Workshop, WorkshopAttendee,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ("email", "name", "role", "is_approved", "is_active", "created_at")
    list_filter = ("role", "is_approved", "is_active")
    search_fields = ("email", "name", "major")
    ordering = ("-created_at",)
    exclude = ("password", "groups", "user_permissions")
    readonly_fields = ("version", "approved_at", "last_login", "date_joined")
    list_per_page = 25
    actions = ["approve"]

    @admin.action(description="Approve selected users")
    def approve(self, request, queryset):
        # save() per user so approved_at is stamped and the version moves
        for user in queryset.filter(is_approved=False):
            user.is_approved = True
            user.save()


class JobApplicationInline(admin.TabularInline):
    model = JobApplication
    extra = 0


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ("title", "company", "type", "posted_by", "is_active", "deadline", "created_at")
    list_filter = ("type", "is_active")
    search_fields = ("title", "company", "posted_by__email")
    inlines = [JobApplicationInline]


class WorkshopAttendeeInline(admin.TabularInline):
    model = WorkshopAttendee
    extra = 0


@admin.register(Workshop)
class WorkshopAdmin(admin.ModelAdmin):
    list_display = ("topic", "host", "date", "capacity", "location_type", "is_active")
    list_filter = ("category", "location_type", "is_active")
    search_fields = ("topic", "host__email")
    ordering = ("-date",)
    inlines = [WorkshopAttendeeInline]


@admin.register(Blog)
class BlogAdmin(admin.ModelAdmin):
    list_display = ("title", "author", "status", "category", "is_featured", "views", "published_at")
    list_filter = ("status", "category", "is_featured")
    search_fields = ("title", "author__email")
    readonly_fields = ("views", "published_at", "version")


@admin.register(BlogComment)
class BlogCommentAdmin(admin.ModelAdmin):
    list_display = ("blog", "user", "content", "is_approved", "created_at")
    list_filter = ("is_approved",)
    list_editable = ("is_approved",)
    list_per_page = 10


@admin.register(Feedback)
class FeedbackAdmin(admin.ModelAdmin):
    list_display = ("event_type", "user", "rating", "priority", "status", "created_at")
    list_filter = ("event_type", "status", "priority", "category")
    readonly_fields = ("priority", "version")


@admin.register(Mentorship)
class MentorshipAdmin(admin.ModelAdmin):
    list_display = ("mentor", "mentee", "status", "requested_at", "accepted_at", "completed_at")
    list_filter = ("status",)
    search_fields = ("mentor__email", "mentee__email")


class ProgramRequestInline(admin.TabularInline):
    model = ProgramRequest
    extra = 0


@admin.register(MentorshipProgram)
class MentorshipProgramAdmin(admin.ModelAdmin):
    list_display = ("title", "mentor", "max_mentees", "is_active", "created_at")
    list_filter = ("is_active",)
    inlines = [ProgramRequestInline]


@admin.register(Announcement)
class AnnouncementAdmin(admin.ModelAdmin):
    list_display = ("title", "status", "priority", "is_pinned", "published_at", "expires_at", "views")
    list_filter = ("status", "priority", "is_pinned")
    search_fields = ("title",)


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    list_display = ("mentor", "mentee", "last_message", "mentor_unread", "mentee_unread", "is_active")
    readonly_fields = ("pair_key", "version")


@admin.register(ChatMessage)
class ChatMessageAdmin(admin.ModelAdmin):
    list_display = ("chat", "sender", "message_type", "is_read", "created_at")
    list_filter = ("message_type", "is_read")
    list_per_page = 10


admin.site.unregister(Group)
