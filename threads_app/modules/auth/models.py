# Supabase Auth
# This module uses Supabase's built-in authentication system
# No custom tables are required - Supabase Auth handles:
# - User registration (auth.users table)
# - Email/password and Google OAuth (PKCE) sign-in
# - Session issuance, refresh and revocation

"""
Supabase Auth provides:
- auth.sign_up() - Register new users
- auth.sign_in_with_password() - Authenticate users
- auth.sign_in_with_oauth() - Start the Google PKCE flow
- auth.exchange_code_for_session() - Finish it at /auth/callback
- auth.get_user() - Get current user from JWT token
- auth.sign_out() - Logout users

Sessions are persisted by the SDK through CookieSessionStorage, so the
access/refresh pair and the PKCE code verifier live in httpOnly cookies.
User metadata (username, full_name, avatar_url, picture) seeds the profile row.
"""
