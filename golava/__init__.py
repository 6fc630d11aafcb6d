"""Sessions, encrypted cookies, password hashing, authentication guards and redirects for web applications."""

__version__ = "0.1.0"