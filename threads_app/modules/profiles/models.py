# Supabase tables: profiles, auth.users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

profiles:
- id: uuid (primary key, references auth.users.id)
- username: text (unique, not null) - lowercase letters, digits and underscore
- full_name: text (nullable)
- avatar_url: text (nullable)
- bio: text (nullable)
- updated_at: timestamp (default: now())

Exactly one row per auth.users row. Rows are created by the OAuth callback
(provisioner.py), by email registration, or by a database trigger; all three
paths may race, so callers read back after inserting.

Storage bucket "avatars" (public) holds uploaded profile pictures under
<user_id>/<timestamp>.<ext>.
"""
