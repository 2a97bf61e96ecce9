import logging
import os
import uuid

from django.core.files.storage import default_storage
from django.http import JsonResponse

from ..auth import login_required_api
from ..errors import api_view
from ..forms import ImageUploadForm
from ..utils import clean_form

logger = logging.getLogger(__name__)


def storage_name(filename, folder="uploads"):
    ext = os.path.splitext(filename)[1].lower() or ".img"
    return f"{folder}/{uuid.uuid4().hex}{ext}"


@api_view(["POST"])
@login_required_api
def upload_image(request):
    image = clean_form(ImageUploadForm, request.POST, files=request.FILES)["image"]
    name = default_storage.save(storage_name(image.name), image)
    url = default_storage.url(name)
    logger.info("User %s uploaded %s (%d bytes)", request.user.pk, name, image.size)
    return JsonResponse({"message": "Image uploaded successfully", "url": url, "imageUrl": url}, status=201)
