from django.test import TestCase
from django.contrib.auth import get_user_model

from schools.models import School

User = get_user_model()


class UserManagerTests(TestCase):
    """Tests for the custom UserManager."""

    def test_create_user(self):
        """Test creating a regular user with email."""
        user = User.objects.create_user(
            email='test@example.com',
            password='testpass123'
        )
        self.assertEqual(user.email, 'test@example.com')
        self.assertTrue(user.check_password('testpass123'))
        self.assertFalse(user.is_staff)
        self.assertFalse(user.is_superuser)
        self.assertTrue(user.is_active)

    def test_create_user_without_email_raises_error(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', password='testpass123')

    def test_create_user_normalizes_email(self):
        """Test that the email domain is lowercased."""
        user = User.objects.create_user(
            email='test@EXAMPLE.COM',
            password='testpass123'
        )
        self.assertEqual(user.email, 'test@example.com')

    def test_create_superuser(self):
        user = User.objects.create_superuser(
            email='admin@example.com',
            password='adminpass123'
        )
        self.assertTrue(user.is_staff)
        self.assertTrue(user.is_superuser)
        self.assertEqual(user.role_label, 'Super Admin')

    def test_create_superuser_requires_flags(self):
        with self.assertRaises(ValueError):
            User.objects.create_superuser(
                email='admin@example.com', password='adminpass123', is_superuser=False
            )

    def test_create_school_admin(self):
        """School admins are attached to a school and are not staff."""
        school = School.objects.create(name='Accra Academy')
        user = User.objects.create_school_admin(
            email='head@accra-academy.edu.gh',
            password='testpass123',
            school=school
        )
        self.assertTrue(user.is_school_admin)
        self.assertFalse(user.is_teacher)
        self.assertFalse(user.is_staff)
        self.assertEqual(user.school, school)
        self.assertEqual(user.role_label, 'School Admin')

    def test_create_teacher(self):
        user = User.objects.create_teacher(
            email='teacher@example.com',
            password='testpass123'
        )
        self.assertTrue(user.is_teacher)
        self.assertFalse(user.is_school_admin)
        self.assertEqual(user.role_label, 'Teacher')

    def test_str_is_email(self):
        user = User.objects.create_user(email='plain@example.com', password='x')
        self.assertEqual(str(user), 'plain@example.com')
        self.assertEqual(user.role_label, 'User')
