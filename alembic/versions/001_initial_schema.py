"""Initial schema: profiles, introduction codes, scans, links, connections, needs.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Profiles are owned by the profile service; we only read summaries
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id UUID PRIMARY KEY,
            name TEXT NOT NULL,
            job_title TEXT,
            company TEXT,
            profile_image TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    op.execute("""
        CREATE TABLE introduction_codes (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            code TEXT UNIQUE NOT NULL,
            owner_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'expired', 'redeemed')),
            single_use BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            expires_at TIMESTAMPTZ
        );
    """)

    op.execute("""
        CREATE INDEX idx_introduction_codes_owner ON introduction_codes(owner_id, created_at DESC);
    """)

    # Append-only; location is {latitude, longitude, place_name}
    op.execute("""
        CREATE TABLE scan_events (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            code_id UUID NOT NULL REFERENCES introduction_codes(id) ON DELETE CASCADE,
            code TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            location JSONB,
            referrer TEXT,
            client_fingerprint TEXT
        );
    """)

    op.execute("""
        CREATE INDEX idx_scan_events_code ON scan_events(code_id, created_at);
    """)

    op.execute("""
        CREATE TABLE pending_links (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email TEXT NOT NULL,
            redemption_code TEXT UNIQUE NOT NULL,
            owner_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            code_id UUID NOT NULL REFERENCES introduction_codes(id) ON DELETE CASCADE,
            scan_event_id UUID REFERENCES scan_events(id) ON DELETE SET NULL,
            redeemed BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    # At most one outstanding link per (email, owner)
    op.execute("""
        CREATE UNIQUE INDEX idx_pending_links_outstanding
        ON pending_links(email, owner_id)
        WHERE NOT redeemed;
    """)

    op.execute("""
        CREATE TABLE connection_requests (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            from_user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            to_user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            origin_scan_event_id UUID REFERENCES scan_events(id) ON DELETE SET NULL,
            state TEXT NOT NULL DEFAULT 'pending' CHECK (state IN ('pending', 'accepted')),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CHECK (from_user_id <> to_user_id)
        );
    """)

    op.execute("""
        CREATE INDEX idx_connection_requests_to ON connection_requests(to_user_id, created_at DESC);
    """)

    op.execute("""
        CREATE INDEX idx_connection_requests_from ON connection_requests(from_user_id, created_at DESC);
    """)

    op.execute("""
        CREATE TABLE needs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            owner_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            visibility TEXT NOT NULL CHECK (visibility IN ('open', 'private')),
            message TEXT NOT NULL CHECK (char_length(message) BETWEEN 1 AND 500),
            tags TEXT[] NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            expires_at TIMESTAMPTZ NOT NULL,
            is_satisfied BOOLEAN NOT NULL DEFAULT false
        );
    """)

    op.execute("""
        CREATE INDEX idx_needs_active ON needs(expires_at) WHERE NOT is_satisfied;
    """)

    op.execute("""
        CREATE INDEX idx_needs_owner ON needs(owner_id, created_at DESC);
    """)

    op.execute("""
        CREATE TABLE need_replies (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            need_id UUID NOT NULL REFERENCES needs(id) ON DELETE CASCADE,
            author_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            reply_to_user_id UUID REFERENCES profiles(id) ON DELETE SET NULL,
            message TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    op.execute("""
        CREATE INDEX idx_need_replies_need ON need_replies(need_id, created_at);
    """)


def downgrade():
    op.execute("DROP TABLE IF EXISTS need_replies;")
    op.execute("DROP TABLE IF EXISTS needs;")
    op.execute("DROP TABLE IF EXISTS connection_requests;")
    op.execute("DROP TABLE IF EXISTS pending_links;")
    op.execute("DROP TABLE IF EXISTS scan_events;")
    op.execute("DROP TABLE IF EXISTS introduction_codes;")
