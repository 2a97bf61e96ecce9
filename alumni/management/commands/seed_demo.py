from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from ...models import Announcement, Blog, Feedback, Job, User, Workshop

USERS = [
    ("Admin User", "admin@alumni.com", "admin123456", User.ADMIN, None, ""),
    ("Michael Chen", "michael.chen@alumni.com", "password123", User.ALUMNI, 2018, "Computer Science"),
    ("Emily Rodriguez", "emily.rodriguez@alumni.com", "password123", User.ALUMNI, 2019, "Business Administration"),
    ("Alex Martinez", "alex.martinez@student.com", "password123", User.STUDENT, 2025, "Computer Science"),
    ("Priya Patel", "priya.patel@student.com", "password123", User.STUDENT, 2026, "Data Science"),
]


class Command(BaseCommand):
    help = "Load a small set of demo users and content"

    def add_arguments(self, parser):
        parser.add_argument("--flush", action="store_true", help="Delete existing demo content first")

    @transaction.atomic
    def handle(self, *args, **options):
        if options["flush"]:
            for model in (Announcement, Feedback, Blog, Workshop, Job):
                model.objects.all().delete()
            User.objects.filter(email__in=[row[1] for row in USERS]).delete()

        users = {}
        for name, email, password, role, year, major in USERS:
            user = User.objects.filter(email=email).first()
            if user is None:
                if role == User.ADMIN:
                    user = User.objects.create_superuser(email, password, name=name)
                else:
                    user = User.objects.create_user(
                        email, password, name=name, role=role, is_approved=True,
                        graduation_year=year, major=major,
                    )
            users[email] = user

        admin = users["admin@alumni.com"]
        michael = users["michael.chen@alumni.com"]
        emily = users["emily.rodriguez@alumni.com"]
        alex = users["alex.martinez@student.com"]
        now = timezone.now()

        Job.objects.get_or_create(
            title="Junior Backend Engineer",
            posted_by=michael,
            defaults={
                "description": "Build and operate Python services.",
                "company": "Google",
                "location": "Mountain View, CA",
                "type": "full-time",
                "salary_min": 90000,
                "salary_max": 120000,
                "skills": ["Python", "Django", "PostgreSQL"],
                "deadline": now + timedelta(days=30),
            },
        )
        Workshop.objects.get_or_create(
            topic="Breaking into product management",
            host=emily,
            defaults={
                "description": "How to move from engineering or business into product roles.",
                "date": now + timedelta(days=14),
                "duration": 90,
                "location_type": "online",
                "online_link": "https://meet.example.com/pm-workshop",
                "capacity": 25,
                "category": "career",
                "registration_deadline": now + timedelta(days=12),
            },
        )
        Blog.objects.get_or_create(
            title="What I wish I knew before my first job",
            author=michael,
            defaults={
                "content": "Ask questions early, write things down and find a mentor. " * 20,
                "category": "career",
                "status": "published",
                "tags": ["career", "advice"],
                "is_featured": True,
            },
        )
        Feedback.objects.get_or_create(
            user=alex,
            event_type="platform",
            defaults={"rating": 5, "comments": "Found a mentor within a week.", "is_public": True},
        )
        Announcement.objects.get_or_create(
            title="Welcome to the alumni platform",
            defaults={
                "content": "Browse jobs, join workshops and connect with mentors.",
                "author": admin,
                "status": "published",
                "priority": "high",
                "target_audience": ["all"],
                "is_pinned": True,
            },
        )

        self.stdout.write(self.style.SUCCESS(f"Seeded {len(users)} users and demo content"))
