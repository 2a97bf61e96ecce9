import logging

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.http import JsonResponse

from . import require_owner
from ..auth import alumni_or_admin, login_required_api
from ..errors import BadRequest, Forbidden, NotFound, api_view
from ..forms import BlogForm, CommentForm, CommentModerationForm
from ..models import Blog, BlogComment, BlogLike
from ..serializers import serialize_blog, serialize_comment
from ..utils import bind_form, clean_form, get_or_404, paginate, parse_body, to_bool

logger = logging.getLogger(__name__)


def public_document(blog):
    return serialize_blog(blog, approved_comments_only=True)


def can_manage(user, blog):
    return user.is_authenticated and (user.is_admin or user.pk == blog.author_id)


def published():
    return Blog.objects.filter(status="published").select_related("author")


@api_view(["GET", "POST"])
def blogs(request):
    if request.method == "POST":
        return create_blog(request)

    qs = published()
    search = request.GET.get("search")
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(content__icontains=search) | Q(excerpt__icontains=search))
    if request.GET.get("category"):
        qs = qs.filter(category=request.GET["category"])
    if request.GET.get("author"):
        qs = qs.filter(author_id=request.GET["author"])
    if to_bool(request.GET.get("featured"), False):
        qs = qs.filter(is_featured=True)
    return JsonResponse(paginate(request, qs.order_by("-published_at"), public_document, "blogs"))


@alumni_or_admin
def create_blog(request):
    form = bind_form(BlogForm, parse_body(request))
    blog = form.save(commit=False)
    blog.author = request.user
    blog.save()
    logger.info("Blog %s created by user %s", blog.pk, request.user.pk)
    return JsonResponse({"message": "Blog post created successfully", "blog": serialize_blog(blog)}, status=201)


@api_view(["GET"])
def featured(request):
    qs = published().filter(is_featured=True).order_by("-published_at")[:5]
    return JsonResponse({"blogs": [public_document(b) for b in qs]})


@api_view(["GET"])
def search(request):
    query = request.GET.get("q", "").strip()
    if not query:
        raise BadRequest("Search query is required")
    qs = published().filter(
        Q(title__icontains=query) | Q(content__icontains=query) | Q(excerpt__icontains=query)
    ).order_by("-published_at")
    return JsonResponse(paginate(request, qs, public_document, "blogs"))


@api_view(["GET"])
@alumni_or_admin
def my_blogs(request):
    qs = Blog.objects.filter(author=request.user).select_related("author")
    return JsonResponse({"blogs": [serialize_blog(b) for b in qs]})


@api_view(["GET", "PUT", "DELETE"])
def blog_detail(request, blog_id):
    blog = get_or_404(Blog.objects.select_related("author"), "Blog post not found", pk=blog_id)
    if request.method == "PUT":
        return update_blog(request, blog)
    if request.method == "DELETE":
        return delete_blog(request, blog)

    manager = can_manage(request.user, blog)
    if blog.status != "published" and not manager:
        raise NotFound("Blog post not found")
    Blog.objects.filter(pk=blog.pk).update(views=F("views") + 1)
    blog.refresh_from_db(fields=["views"])
    return JsonResponse({"blog": serialize_blog(blog, approved_comments_only=not manager)})


@alumni_or_admin
def update_blog(request, blog):
    require_owner(request.user, blog.author_id, "Not authorized to update this blog post")
    blog = bind_form(BlogForm, parse_body(request), instance=blog).save()
    return JsonResponse({"message": "Blog post updated successfully", "blog": serialize_blog(blog)})


@alumni_or_admin
def delete_blog(request, blog):
    require_owner(request.user, blog.author_id, "Not authorized to delete this blog post")
    blog.delete()
    return JsonResponse({"message": "Blog post deleted successfully"})


@api_view(["POST"])
@login_required_api
def toggle_like(request, blog_id):
    blog = get_or_404(published(), "Blog post not found", pk=blog_id)
    like = blog.likes.filter(user=request.user).first()
    if like is not None:
        like.delete()
        liked = False
    else:
        try:
            with transaction.atomic():
                BlogLike.objects.create(blog=blog, user=request.user)
        except IntegrityError:
            pass  # a concurrent like from the same user already exists
        liked = True
    return JsonResponse({"liked": liked, "likeCount": blog.likes.count()})


@api_view(["POST"])
@login_required_api
def add_comment(request, blog_id):
    blog = get_or_404(published(), "Blog post not found", pk=blog_id)
    if not blog.allow_comments:
        raise BadRequest("Comments are disabled for this blog post")
    data = clean_form(CommentForm, parse_body(request))
    comment = BlogComment.objects.create(
        blog=blog,
        user=request.user,
        content=data["content"],
        is_approved=can_manage(request.user, blog),
    )
    return JsonResponse({"message": "Comment added successfully", "comment": serialize_comment(comment)}, status=201)


@api_view(["POST"])
@login_required_api
def add_reply(request, blog_id, comment_id):
    blog = get_or_404(published(), "Blog post not found", pk=blog_id)
    if not blog.allow_comments:
        raise BadRequest("Comments are disabled for this blog post")
    parent = get_or_404(blog.comments.all(), "Comment not found", pk=comment_id)
    data = clean_form(CommentForm, parse_body(request))
    reply = BlogComment.objects.create(
        blog=blog,
        parent=parent,
        user=request.user,
        content=data["content"],
        is_approved=can_manage(request.user, blog),
    )
    return JsonResponse({"message": "Reply added successfully", "reply": serialize_comment(reply)}, status=201)


@api_view(["PUT", "PATCH"])
@login_required_api
def moderate_comment(request, blog_id, comment_id):
    blog = get_or_404(Blog.objects.all(), "Blog post not found", pk=blog_id)
    if not can_manage(request.user, blog):
        raise Forbidden("Not authorized to modify comments")
    comment = get_or_404(blog.comments.select_related("user"), "Comment not found", pk=comment_id)

    action = clean_form(CommentModerationForm, parse_body(request))["action"]
    if action == "delete":
        comment.delete()
        return JsonResponse({"message": "Comment deleted successfully"})
    comment.is_approved = True
    comment.save(update_fields=["is_approved"])
    return JsonResponse({"message": "Comment approved successfully", "comment": serialize_comment(comment)})
