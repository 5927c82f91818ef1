import logging

from django.apps import apps
from django.db.models.signals import post_save
from django.dispatch import receiver
from allauth.account.signals import user_signed_up

from .models import CustomUser

logger = logging.getLogger(__name__)


def _assign_role_from_request(request, user):
    """Assign user.role from the signup path or its `next` parameter.

    Any mention of 'artisan' makes the account an artisan, everything
    else signs up as a client.
    """
    path = (getattr(request, 'path', '') or '').lower()
    next_url = (request.GET.get('next', '') or '').lower() if hasattr(request, 'GET') else ''

    if 'artisan' in path or 'artisan' in next_url:
        user.role = CustomUser.ROLE_ARTISAN
    else:
        user.role = CustomUser.ROLE_CLIENT

    logger.info(f"Assigned role '{user.role}' to user {user.email} (path={path}, next={next_url})")
    user.save()


@receiver(user_signed_up)
def assign_role_on_account_signup(request, user, **kwargs):
    """Handle role assignment for allauth (email/password) signups."""
    if request is None:
        user.role = user.role or CustomUser.ROLE_CLIENT
        user.save()
        logger.info(f"No request available; left role as '{user.role}' for {user.email}")
        return

    _assign_role_from_request(request, user)


@receiver(post_save, sender=CustomUser)
def ensure_artisan_profile(sender, instance, **kwargs):
    """Every artisan account owns a (possibly unapproved) artisan profile."""
    if instance.role != CustomUser.ROLE_ARTISAN or instance.is_system:
        return

    ArtisanProfile = apps.get_model('shop', 'ArtisanProfile')
    profile, created = ArtisanProfile.objects.get_or_create(
        user=instance,
        defaults={'business_name': instance.get_full_name()},
    )
    if created:
        logger.info(f'Artisan profile created for {instance.email}')
