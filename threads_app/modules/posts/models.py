# Supabase tables: posts, likes, comments
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

posts:
- id: bigint (primary key, identity)
- user_id: uuid (not null, references profiles.id)
- content: text (not null)
- image_url: text (nullable) - public URL in the "post-images" bucket
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())

Row-level security: anyone signed in can read; insert/update/delete only
where user_id = auth.uid(). The service checks ownership too, so a missing
policy produces a 403 instead of a silent no-op.

Storage bucket "post-images" (public) holds uploads named
<user_id>-<timestamp>.<ext>.
"""
