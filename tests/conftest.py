import os

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-0123456789abcdef")
os.environ.setdefault("ADMIN_SECRET", "test-admin-secret")
