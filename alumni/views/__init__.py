from django.http import JsonResponse

from ..errors import Forbidden, api_view


@api_view(["GET"])
def health(request):
    return JsonResponse({"message": "Alumni Association Platform API is running"})


def require_owner(user, owner_id, message):
    if not (user.is_admin or user.pk == owner_id):
        raise Forbidden(message)
