"""Member accounts for the hospitality marketplace."""

from __future__ import annotations

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.validators import RegexValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
	"""Manager that enforces unique email addresses."""

	use_in_migrations = True

	def _create_user(self, email, password, **extra_fields):
		if not email:
			raise ValueError("Users must provide an email address")
		email = self.normalize_email(email)
		user = self.model(email=email, username=email, **extra_fields)
		user.set_password(password)
		user.save(using=self._db)
		return user

	def create_user(self, email, password=None, **extra_fields):  # type: ignore[override]
		extra_fields.setdefault('is_staff', False)
		extra_fields.setdefault('is_superuser', False)
		return self._create_user(email, password, **extra_fields)

	def create_superuser(self, email, password=None, **extra_fields):  # type: ignore[override]
		extra_fields.setdefault('is_staff', True)
		extra_fields.setdefault('is_superuser', True)
		extra_fields.setdefault('member_type', User.MemberType.ADMIN)

		if extra_fields.get('is_staff') is not True:
			raise ValueError('Superuser must have is_staff=True.')
		if extra_fields.get('is_superuser') is not True:
			raise ValueError('Superuser must have is_superuser=True.')

		return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
	"""Marketplace member: a guest, a hotel agent, or an administrator."""

	class MemberType(models.TextChoices):
		USER = 'USER', 'User'
		AGENT = 'AGENT', 'Agent'
		ADMIN = 'ADMIN', 'Admin'

	class MemberStatus(models.TextChoices):
		ACTIVE = 'ACTIVE', 'Active'
		BLOCK = 'BLOCK', 'Blocked'
		DELETE = 'DELETE', 'Deleted'

	username = models.EmailField(_('username'), unique=True)
	email = models.EmailField(_('email address'), unique=True)
	phone_number = models.CharField(
		_('phone number'),
		max_length=20,
		blank=True,
		validators=[RegexValidator(r'^[0-9+() -]{7,}$')],
	)
	member_type = models.CharField(max_length=10, choices=MemberType.choices, default=MemberType.USER)
	member_status = models.CharField(max_length=10, choices=MemberStatus.choices, default=MemberStatus.ACTIVE)

	USERNAME_FIELD = 'email'
	REQUIRED_FIELDS: list[str] = []

	objects = UserManager()

	class Meta(AbstractUser.Meta):
		swappable = 'AUTH_USER_MODEL'

	@property
	def is_admin_member(self) -> bool:
		return self.member_type == self.MemberType.ADMIN

	@property
	def is_active_member(self) -> bool:
		return self.is_active and self.member_status == self.MemberStatus.ACTIVE

	def __str__(self) -> str:  # pragma: no cover - human readable
		return self.get_full_name() or self.email
