from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    display_name = models.CharField(max_length=120, blank=True)

    @property
    def public_name(self) -> str:
        return self.display_name or f"{self.first_name} {self.last_name}".strip() or self.email
