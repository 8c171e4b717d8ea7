"""Authentication building blocks.

Learn: Everything needed around the email/password flow that is not a
service itself:
1. password   → pluggable hash/verify/validate strategy (bcrypt default)
2. emails     → normalization + format validation
3. cookies    → signed session cookie + optional session_data envelope
4. dependencies → resolve the current session from a request
5. verification → email verification hook surface (off by default)
"""
