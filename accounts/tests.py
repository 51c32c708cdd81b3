from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from .models import User


class UserManagerTests(TestCase):

	def test_create_user_uses_email_as_username(self) -> None:
		user = User.objects.create_user(email='Guest@Example.com', password='Password123!')
		self.assertEqual(user.email, 'Guest@example.com')
		self.assertEqual(user.username, user.email)
		self.assertTrue(user.check_password('Password123!'))
		self.assertEqual(user.member_type, User.MemberType.USER)
		self.assertTrue(user.is_active_member)
		self.assertFalse(user.is_admin_member)

	def test_email_is_required(self) -> None:
		with self.assertRaises(ValueError):
			User.objects.create_user(email='', password='Password123!')

	def test_superuser_is_admin_member(self) -> None:
		user = User.objects.create_superuser(email='root@example.com', password='Password123!')
		self.assertTrue(user.is_staff)
		self.assertTrue(user.is_admin_member)

	def test_blocked_member_is_not_active_member(self) -> None:
		user = User.objects.create_user(
			email='blocked@example.com',
			password='Password123!',
			member_status=User.MemberStatus.BLOCK,
		)
		self.assertTrue(user.is_active)
		self.assertFalse(user.is_active_member)


class SetMemberStatusCommandTests(TestCase):

	def setUp(self) -> None:
		self.user = User.objects.create_user(email='member@example.com', password='Password123!')

	def test_blocks_listed_members(self) -> None:
		out = StringIO()
		call_command('set_member_status', 'BLOCK', 'member@example.com', 'missing@example.com', stdout=out)

		self.user.refresh_from_db()
		self.assertEqual(self.user.member_status, User.MemberStatus.BLOCK)
		self.assertIn('User not found: missing@example.com', out.getvalue())
		self.assertIn('Updated 1 member(s).', out.getvalue())

	def test_unchanged_member_is_skipped(self) -> None:
		out = StringIO()
		call_command('set_member_status', 'ACTIVE', 'member@example.com', stdout=out)
		self.assertIn('already ACTIVE', out.getvalue())
		self.assertIn('Updated 0 member(s).', out.getvalue())
