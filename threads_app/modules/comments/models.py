# Supabase table: comments
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

comments:
- id: bigint (primary key, identity)
- post_id: bigint (not null, references posts.id on delete cascade)
- user_id: uuid (not null, references profiles.id)
- content: text (not null, may be empty for sticker/voice comments)
- metadata: text (nullable) - JSON string, e.g.
    {"type": "sticker", "sticker": "https://.../wave.gif"}
    {"type": "voice", "voiceNote": "https://.../note.webm"}
- created_at: timestamp (default: now())

Only the author may delete a comment.
"""
