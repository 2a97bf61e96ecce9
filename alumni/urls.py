from django.urls import include, path

from .views import admin, announcements, auth, blogs, chat, feedback, health, jobs, mentorship, programs, upload, users
from .views import workshops

app_name = "alumni"

auth_patterns = [
    path("register", auth.register, name="register"),
    path("login", auth.login, name="login"),
    path("me", auth.me, name="me"),
    path("update-profile", auth.update_profile, name="update-profile"),
    path("delete-profile-image", auth.delete_profile_image, name="delete-profile-image"),
    path("pending-users", auth.pending_users, name="pending-users"),
    path("approve-user/<int:user_id>", auth.approve_user, name="approve-user"),
]

user_patterns = [
    path("", users.user_list, name="user-list"),
    path("<int:user_id>", users.user_detail, name="user-detail"),
]

job_patterns = [
    path("", jobs.jobs, name="jobs"),
    path("my-jobs", jobs.my_jobs, name="my-jobs"),
    path("my-applications", jobs.my_applications, name="my-applications"),
    path("<int:job_id>", jobs.job_detail, name="job-detail"),
    path("<int:job_id>/apply", jobs.apply, name="job-apply"),
    path("<int:job_id>/applications/<int:application_id>", jobs.update_application_status,
         name="job-application-status"),
]

workshop_patterns = [
    path("", workshops.workshops, name="workshops"),
    path("my-workshops", workshops.my_workshops, name="my-workshops"),
    path("my-registrations", workshops.my_registrations, name="my-registrations"),
    path("<int:workshop_id>", workshops.workshop_detail, name="workshop-detail"),
    path("<int:workshop_id>/register", workshops.registration, name="workshop-register"),
    path("<int:workshop_id>/attendees/<int:attendee_id>", workshops.update_attendee_status,
         name="workshop-attendee-status"),
]

blog_patterns = [
    path("", blogs.blogs, name="blogs"),
    path("featured", blogs.featured, name="blogs-featured"),
    path("search", blogs.search, name="blogs-search"),
    path("my-blogs", blogs.my_blogs, name="my-blogs"),
    path("<int:blog_id>", blogs.blog_detail, name="blog-detail"),
    path("<int:blog_id>/like", blogs.toggle_like, name="blog-like"),
    path("<int:blog_id>/comments", blogs.add_comment, name="blog-comments"),
    path("<int:blog_id>/comments/<int:comment_id>", blogs.moderate_comment, name="blog-comment"),
    path("<int:blog_id>/comments/<int:comment_id>/replies", blogs.add_reply, name="blog-comment-replies"),
]

feedback_patterns = [
    path("", feedback.feedback, name="feedback"),
    path("public", feedback.public_feedback, name="feedback-public"),
    path("my-feedback", feedback.my_feedback, name="my-feedback"),
    path("stats", feedback.stats, name="feedback-stats"),
    path("summary", feedback.summary, name="feedback-summary"),
    path("user/<int:user_id>", feedback.user_feedback, name="feedback-user"),
    path("<int:feedback_id>", feedback.feedback_detail, name="feedback-detail"),
    path("<int:feedback_id>/status", feedback.update_status, name="feedback-status"),
    path("<int:feedback_id>/response", feedback.respond, name="feedback-response"),
    path("<int:feedback_id>/helpful", feedback.toggle_helpful, name="feedback-helpful"),
]

mentorship_patterns = [
    path("mentors", mentorship.mentors, name="mentors"),
    path("requests", mentorship.requests, name="mentorship-requests"),
    path("mentor/requests", mentorship.mentor_requests, name="mentor-requests"),
    path("mentee/mentorships", mentorship.mentee_mentorships, name="mentee-mentorships"),
    path("request", mentorship.send_request, name="mentorship-request"),
    path("request/<int:mentorship_id>", mentorship.respond, name="mentorship-respond"),
    path("<int:mentorship_id>/status", mentorship.update_status, name="mentorship-status"),
    path("relationships", mentorship.relationships, name="mentorship-relationships"),
    path("chat/<int:relationship_id>", mentorship.relationship_messages, name="mentorship-chat"),
    path("stats", mentorship.stats, name="mentorship-stats"),
]

program_patterns = [
    path("", programs.program_list, name="programs"),
    path("all", programs.all_programs, name="programs-all"),
    path("<int:program_id>", programs.program_detail, name="program-detail"),
    path("request/<int:program_id>", programs.request_to_join, name="program-join"),
    path("request/<int:program_id>/<int:request_id>", programs.respond_to_join_request, name="program-respond"),
]

announcement_patterns = [
    path("", announcements.announcements, name="announcements"),
    path("published", announcements.published, name="announcements-published"),
    path("stats", announcements.stats, name="announcements-stats"),
    path("<int:announcement_id>", announcements.announcement_detail, name="announcement-detail"),
]

chat_patterns = [
    path("", chat.chat_list, name="chats"),
    path("mentors", chat.mentors, name="chat-mentors"),
    path("mentees", chat.mentees, name="chat-mentees"),
    path("user/<int:other_id>", chat.chat_with_user, name="chat-with-user"),
    path("<int:chat_id>/messages", chat.messages, name="chat-messages"),
    path("<int:chat_id>/read", chat.read, name="chat-read"),
]

admin_patterns = [
    path("users", admin.users, name="admin-users"),
    path("users/<int:user_id>", admin.user_detail, name="admin-user-detail"),
    path("users/<int:user_id>/approve", admin.approve_user, name="admin-approve-user"),
    path("analytics", admin.analytics, name="admin-analytics"),
    path("mentorships", admin.mentorships, name="admin-mentorships"),
    path("jobs", admin.jobs, name="admin-jobs"),
    path("applications", admin.applications, name="admin-applications"),
    path("export/users.xlsx", admin.export_users, name="admin-export-users"),
    path("export/analytics.pdf", admin.export_analytics, name="admin-export-analytics"),
]

urlpatterns = [
    path("", health, name="health"),
    path("api/auth/", include(auth_patterns)),
    path("api/users/", include(user_patterns)),
    path("api/jobs/", include(job_patterns)),
    path("api/workshops/", include(workshop_patterns)),
    path("api/blogs/", include(blog_patterns)),
    path("api/feedback/", include(feedback_patterns)),
    path("api/mentorship/", include(mentorship_patterns)),
    path("api/mentorship-programs/", include(program_patterns)),
    path("api/announcements/", include(announcement_patterns)),
    path("api/chat/", include(chat_patterns)),
    path("api/admin/", include(admin_patterns)),
    path("api/upload", upload.upload_image, name="upload"),
]
