from django.db import models


class School(models.Model):
    # Basic Info
    name = models.CharField(max_length=100)
    short_name = models.CharField(max_length=20, blank=True, help_text="Short name for report headers")

    # Contact & Address
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)

    is_active = models.BooleanField(default=True)

    # Metadata
    created_on = models.DateField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def display_name(self):
        """Return short_name if available, otherwise name."""
        return self.short_name or self.name
