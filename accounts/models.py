import uuid

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models


class UserManager(BaseUserManager):
    """Custom user manager for UUID primary keys"""
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('The Email field must be set')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """Custom user model with UUID primary key and a platform-level role"""
    PLATFORM_SUPER_ADMIN = 'SUPER_ADMIN'
    PLATFORM_SAAS_ADMIN = 'SAAS_ADMIN'
    PLATFORM_SAAS_STAFF = 'SAAS_STAFF'
    PLATFORM_NONE = 'NONE'
    PLATFORM_ROLE_CHOICES = [
        (PLATFORM_NONE, 'None'),
        (PLATFORM_SUPER_ADMIN, 'Super Admin'),
        (PLATFORM_SAAS_ADMIN, 'SaaS Admin'),
        (PLATFORM_SAAS_STAFF, 'SaaS Staff'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    platform_role = models.CharField(
        max_length=20,
        choices=PLATFORM_ROLE_CHOICES,
        default=PLATFORM_NONE,
        help_text='Platform-wide role, independent of any business membership'
    )
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    class Meta:
        db_table = 'users'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} <{self.email}>"

    def get_active_membership(self):
        """Return the user's active business membership, if any."""
        return (
            self.business_memberships
            .select_related('business', 'default_branch')
            .filter(is_active=True, business__is_active=True)
            .order_by('created_at')
            .first()
        )


class Business(models.Model):
    """A tenant of the platform. Owns branches, sales and ledgers."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey('User', on_delete=models.CASCADE, related_name='owned_businesses')
    name = models.CharField(max_length=255, unique=True)
    tin = models.CharField(max_length=100, blank=True, default='')
    email = models.EmailField(blank=True, default='')
    address = models.TextField(blank=True, default='')
    currency = models.CharField(max_length=3, default='IDR')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'businesses'
        ordering = ['name']

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        is_new = self._state.adding
        super().save(*args, **kwargs)
        if is_new:
            BusinessMembership.objects.get_or_create(
                business=self,
                user=self.owner,
                defaults={'role': BusinessMembership.OWNER, 'is_admin': True},
            )


class BusinessMembership(models.Model):
    """Associates users with businesses and roles."""
    OWNER = 'OWNER'
    ADMIN = 'ADMIN'
    MANAGER = 'MANAGER'
    CASHIER = 'CASHIER'
    ROLE_CHOICES = [
        (OWNER, 'Owner'),
        (ADMIN, 'Administrator'),
        (MANAGER, 'Manager'),
        (CASHIER, 'Cashier'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name='memberships')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='business_memberships')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=CASHIER)
    default_branch = models.ForeignKey(
        'inventory.Branch',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='default_memberships',
        help_text='Branch used when a request does not name one'
    )
    is_admin = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'business_memberships'
        unique_together = ['business', 'user']
        ordering = ['business__name', 'user__name']

    def __str__(self):
        return f"{self.user.name} - {self.business.name} ({self.role})"
