from django.db.models import Q
from django.http import JsonResponse

from ..auth import login_required_api
from ..errors import api_view
from ..models import User
from ..serializers import serialize_user
from ..utils import get_or_404, paginate


@api_view(["GET"])
@login_required_api
def user_list(request):
    users = User.objects.filter(is_active=True)
    if not request.user.is_admin:
        users = users.filter(is_approved=True)

    role = request.GET.get("role")
    if role:
        users = users.filter(role=role)
    search = request.GET.get("search")
    if search:
        users = users.filter(Q(name__icontains=search) | Q(email__icontains=search) | Q(major__icontains=search))

    return JsonResponse(paginate(request, users, serialize_user, "users", default_limit=20))


@api_view(["GET"])
@login_required_api
def user_detail(request, user_id):
    users = User.objects.filter(is_active=True)
    if not request.user.is_admin:
        users = users.filter(is_approved=True)
    return JsonResponse({"user": serialize_user(get_or_404(users, "User not found", pk=user_id))})
