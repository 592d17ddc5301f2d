import uuid
from django.db import models


class Project(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    description = models.TextField(max_length=1000, blank=True)
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)

    # A user cannot be deleted while responsible for a project
    responsible = models.ForeignKey(
        'identity.User',
        on_delete=models.PROTECT,
        related_name='responsible_projects',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'projects'
        ordering = ['-created_at']

    def __str__(self):
        return self.name
