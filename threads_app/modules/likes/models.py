# Supabase table: likes
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

likes:
- id: bigint (primary key, identity)
- post_id: bigint (not null, references posts.id on delete cascade)
- user_id: uuid (not null, references profiles.id)
- created_at: timestamp (default: now())

unique (post_id, user_id): a user likes a post at most once.
"""
