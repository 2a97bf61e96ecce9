import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "association.settings")

# Do NOT call django.setup() manually; get_asgi_application() does it
# before the routing imports below touch models.
django_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402

from alumni.middleware import TokenAuthMiddleware  # noqa: E402
from alumni.routing import websocket_urlpatterns  # noqa: E402
from alumni.utils import wait_for_database  # noqa: E402

wait_for_database()

application = ProtocolTypeRouter({
    "http": django_app,
    "websocket": TokenAuthMiddleware(
        URLRouter(websocket_urlpatterns)
    ),
})
