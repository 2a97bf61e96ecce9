from django import forms
from django.conf import settings
from PIL import Image, UnidentifiedImageError

ALLOWED_IMAGE_FORMATS = ("JPEG", "PNG", "GIF", "WEBP")


class ImageValidationMixin:
    def clean_image(self):
        image = self.cleaned_data.get("image")
        if not image:
            raise forms.ValidationError("No file uploaded")

        # Size check (5 MB)
        if image.size > settings.MAX_IMAGE_UPLOAD_SIZE:
            raise forms.ValidationError("File too large. Maximum size is 5MB for images.")

        # Content check, the extension alone is not trusted
        try:
            with Image.open(image) as img:
                img.verify()
                image_format = img.format
        except (UnidentifiedImageError, OSError):
            raise forms.ValidationError("Only image files are allowed.")
        finally:
            image.seek(0)

        if image_format not in ALLOWED_IMAGE_FORMATS:
            raise forms.ValidationError("Only JPEG, PNG, GIF or WEBP images are allowed.")
        return image


def validate_graduation_year(value, current_year):
    if value is None:
        return
    if value < 1950 or value > current_year + 10:
        raise forms.ValidationError("Please provide a valid graduation year")
