from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin, BaseUserManager
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class CustomUserManager(BaseUserManager):
    """
    Custom user manager where email is the unique identifier
    for authentication instead of username.
    """

    def create_user(self, email, password=None, **extra_fields):
        """
        Create and save a regular user with the given email and password.
        """
        if not email:
            raise ValueError(_('The Email field must be set'))

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create and save a superuser with the given email and password.
        """
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', CustomUser.ROLE_ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True.'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True.'))

        return self.create_user(email, password, **extra_fields)

    def get_system_user(self):
        """
        Return the account that authors automated messages, creating it
        on first use. It can never log in.
        """
        user, created = self.get_or_create(
            email=settings.SYSTEM_USER_EMAIL,
            defaults={
                'first_name': 'System',
                'last_name': 'Artisashop',
                'role': CustomUser.ROLE_CLIENT,
                'is_system': True,
            },
        )
        if created:
            user.set_unusable_password()
            user.save(update_fields=['password'])
        return user


class CustomUser(AbstractBaseUser, PermissionsMixin):
    """
    Marketplace account. Email is the login identifier and `role`
    decides what the account can do.
    """

    ROLE_CLIENT = 'client'
    ROLE_ARTISAN = 'artisan'
    ROLE_ADMIN = 'admin'

    ROLE_CHOICES = (
        (ROLE_CLIENT, 'Client'),
        (ROLE_ARTISAN, 'Artisan'),
        (ROLE_ADMIN, 'Admin'),
    )

    email = models.EmailField(
        _('email address'),
        unique=True,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
    )
    first_name = models.CharField(_('first name'), max_length=100)
    last_name = models.CharField(_('last name'), max_length=100)
    phone = models.CharField(_('phone'), max_length=20, blank=True)
    address = models.TextField(_('address'), blank=True)
    role = models.CharField(
        _('role'),
        max_length=10,
        choices=ROLE_CHOICES,
        default=ROLE_CLIENT,
        help_text=_('User role in the marketplace')
    )
    is_system = models.BooleanField(
        _('system account'),
        default=False,
        help_text=_('Designates the account that authors automated messages.')
    )
    date_joined = models.DateTimeField(
        _('date joined'),
        default=timezone.now
    )
    is_staff = models.BooleanField(
        _('staff status'),
        default=False,
        help_text=_('Designates whether the user can log into the admin site.')
    )
    is_active = models.BooleanField(
        _('active'),
        default=True,
        help_text=_(
            'Designates whether this user should be treated as active. '
            'Unselect this instead of deleting accounts.'
        )
    )

    objects = CustomUserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-date_joined']
        db_table = 'users_customuser'

    def __str__(self):
        return self.email

    def get_full_name(self):
        full_name = f'{self.first_name} {self.last_name}'.strip()
        return full_name or self.email

    def get_short_name(self):
        return self.first_name or self.email.split('@')[0]

    @property
    def full_name(self):
        return self.get_full_name()

    @property
    def is_client(self):
        return self.role == self.ROLE_CLIENT

    @property
    def is_artisan(self):
        return self.role == self.ROLE_ARTISAN

    @property
    def is_admin_role(self):
        return self.role == self.ROLE_ADMIN

    def to_dict(self):
        return {
            'id': self.pk,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'phone': self.phone,
            'address': self.address,
            'role': self.role,
            'is_active': self.is_active,
            'created_at': self.date_joined.isoformat() if self.date_joined else None,
        }
