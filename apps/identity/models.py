import uuid
from django.db import models


# Prefix of external ids minted locally while the identity provider is
# unavailable. Provider-issued ids are plain UUIDs and never carry it.
LOCAL_EXTERNAL_ID_PREFIX = 'local-'


class Role(models.TextChoices):
    ADMIN = 'ADMIN', 'Administrator'
    USER = 'USER', 'User'


ROLE_DESCRIPTIONS = {
    Role.ADMIN: 'Administrator with full access to all features',
    Role.USER: 'Standard user with limited access',
}


class User(models.Model):
    """
    Local mirror of an identity provider account.

    Credentials live in the identity provider; this record keeps the profile,
    the identity document reference and a cached role set.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    external_id = models.CharField(max_length=64, unique=True)

    last_name = models.CharField(max_length=100)
    first_name = models.CharField(max_length=100)
    birth_date = models.DateField(null=True, blank=True)
    email = models.EmailField(max_length=255, unique=True)
    phone = models.CharField(max_length=20, blank=True)
    identity_document_url = models.CharField(max_length=500, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'
        ordering = ['last_name', 'first_name']

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def is_degraded(self) -> bool:
        """True while the account exists only locally."""
        return self.external_id.startswith(LOCAL_EXTERNAL_ID_PREFIX)

    @property
    def role_names(self) -> set:
        return {m.role for m in self.role_memberships.all()}


class RoleMembership(models.Model):
    """One role granted to one user (user_roles join table)."""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='role_memberships')
    role = models.CharField(max_length=20, choices=Role.choices)

    class Meta:
        db_table = 'user_roles'
        unique_together = ['user', 'role']
        ordering = ['role']

    def __str__(self):
        return f"{self.user} - {self.role}"
