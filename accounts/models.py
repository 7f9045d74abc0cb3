# accounts/models.py

from django.db import models
from django.contrib.auth.models import AbstractUser
from .managers import CustomUserManager


class User(AbstractUser):
    INSTRUCTOR = 'instructor'
    STUDENT = 'student'
    ADMIN = 'admin'
    ROLE_CHOICES = (
        (INSTRUCTOR, 'Instructor'),
        (STUDENT, 'Student'),
        (ADMIN, 'Admin'),
    )

    username = None
    email = models.EmailField(unique=True)
    first_name = models.CharField(max_length=150, blank=False)
    last_name = models.CharField(max_length=150, blank=False)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=STUDENT)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    objects = CustomUserManager()

    def __str__(self):
        return self.email

    @property
    def display_name(self):
        full_name = f'{self.first_name} {self.last_name}'.strip()
        return full_name or self.email

    @property
    def is_instructor(self):
        return self.role == self.INSTRUCTOR

    @property
    def is_student(self):
        return self.role == self.STUDENT
