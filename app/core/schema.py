"""
Election database schema.

The initial Alembic revision applies ``SCHEMA_SQL``; integration tests apply
the same statements inside a rolled-back transaction.
"""

SCHEMA_SQL = """
-- ============================================
-- GEO HIERARCHY
-- ============================================
CREATE TABLE IF NOT EXISTS regions (
    id VARCHAR(50) PRIMARY KEY,
    name VARCHAR(255) NOT NULL,
    name_th VARCHAR(255) NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS provinces (
    id VARCHAR(100) PRIMARY KEY,
    code VARCHAR(10) NOT NULL,
    name VARCHAR(255) NOT NULL,
    name_th VARCHAR(255) NOT NULL,
    region_id VARCHAR(50) NOT NULL REFERENCES regions(id),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_provinces_region ON provinces(region_id);

CREATE TABLE IF NOT EXISTS districts (
    id VARCHAR(150) PRIMARY KEY,
    province_id VARCHAR(100) NOT NULL REFERENCES provinces(id),
    zone_number INTEGER NOT NULL CHECK (zone_number > 0),
    name VARCHAR(255) NOT NULL,
    name_th VARCHAR(255) NOT NULL,
    zone_description TEXT,
    voter_count INTEGER NOT NULL DEFAULT 0 CHECK (voter_count >= 0),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (province_id, zone_number)
);

-- ============================================
-- USERS - voters and officials
-- ============================================
CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    email VARCHAR(255) UNIQUE,
    citizen_id VARCHAR(13) UNIQUE,
    name VARCHAR(255) NOT NULL,
    role VARCHAR(50) NOT NULL CHECK (role IN (
        'super_admin', 'regional_admin', 'province_admin', 'district_official', 'voter'
    )),
    password_hash TEXT,
    scope_region_id VARCHAR(50) REFERENCES regions(id) ON DELETE SET NULL,
    scope_province_id VARCHAR(100) REFERENCES provinces(id) ON DELETE SET NULL,
    scope_district_id VARCHAR(150) REFERENCES districts(id) ON DELETE SET NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CHECK (email IS NOT NULL OR citizen_id IS NOT NULL)
);

CREATE INDEX IF NOT EXISTS idx_users_role ON users(role);

-- ============================================
-- ELECTIONS AND BALLOT CONTENT
-- ============================================
CREATE TABLE IF NOT EXISTS elections (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name VARCHAR(255) NOT NULL,
    name_th VARCHAR(255) NOT NULL,
    description TEXT,
    status VARCHAR(20) NOT NULL DEFAULT 'DRAFT' CHECK (status IN (
        'DRAFT', 'OPEN', 'CLOSED', 'ARCHIVED'
    )),
    has_party_list BOOLEAN NOT NULL DEFAULT TRUE,
    has_constituency BOOLEAN NOT NULL DEFAULT TRUE,
    has_referendum BOOLEAN NOT NULL DEFAULT FALSE,
    start_date TIMESTAMPTZ NOT NULL,
    end_date TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CHECK (end_date > start_date)
);

CREATE INDEX IF NOT EXISTS idx_elections_status ON elections(status);

CREATE TABLE IF NOT EXISTS parties (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    election_id UUID NOT NULL REFERENCES elections(id) ON DELETE CASCADE,
    party_number INTEGER NOT NULL CHECK (party_number > 0),
    name VARCHAR(255) NOT NULL,
    name_th VARCHAR(255) NOT NULL,
    abbreviation VARCHAR(20),
    color VARCHAR(7),
    logo_url TEXT,
    description TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (election_id, party_number)
);

CREATE TABLE IF NOT EXISTS candidates (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    election_id UUID NOT NULL REFERENCES elections(id) ON DELETE CASCADE,
    district_id VARCHAR(150) NOT NULL REFERENCES districts(id),
    party_id UUID REFERENCES parties(id) ON DELETE SET NULL,
    candidate_number INTEGER NOT NULL CHECK (candidate_number > 0),
    title_th VARCHAR(50),
    first_name_th VARCHAR(255) NOT NULL,
    last_name_th VARCHAR(255) NOT NULL,
    title_en VARCHAR(50),
    first_name_en VARCHAR(255),
    last_name_en VARCHAR(255),
    photo_url TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (election_id, district_id, candidate_number)
);

CREATE INDEX IF NOT EXISTS idx_candidates_district ON candidates(election_id, district_id);

CREATE TABLE IF NOT EXISTS referendum_questions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    election_id UUID NOT NULL REFERENCES elections(id) ON DELETE CASCADE,
    question_number INTEGER NOT NULL CHECK (question_number > 0),
    question_th TEXT NOT NULL,
    question_en TEXT,
    description_th TEXT,
    description_en TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (election_id, question_number)
);

-- ============================================
-- CAST BALLOTS
-- ============================================
-- One row per voter per election; the primary key rejects a second cast.
CREATE TABLE IF NOT EXISTS ballot_casts (
    election_id UUID NOT NULL REFERENCES elections(id) ON DELETE CASCADE,
    voter_hash VARCHAR(64) NOT NULL,
    ballot_types TEXT[] NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (election_id, voter_hash)
);

CREATE TABLE IF NOT EXISTS votes (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    election_id UUID NOT NULL REFERENCES elections(id) ON DELETE CASCADE,
    ballot_type VARCHAR(20) NOT NULL CHECK (ballot_type IN (
        'PARTY_LIST', 'CONSTITUENCY', 'REFERENDUM'
    )),
    voter_hash VARCHAR(64) NOT NULL,
    party_id UUID REFERENCES parties(id),
    candidate_id UUID REFERENCES candidates(id),
    referendum_question_id UUID REFERENCES referendum_questions(id),
    referendum_answer VARCHAR(20) CHECK (referendum_answer IN (
        'APPROVE', 'DISAPPROVE', 'ABSTAIN'
    )),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CHECK (ballot_type <> 'PARTY_LIST' OR (candidate_id IS NULL AND referendum_question_id IS NULL)),
    CHECK (ballot_type <> 'CONSTITUENCY' OR (party_id IS NULL AND referendum_question_id IS NULL)),
    CHECK (ballot_type <> 'REFERENDUM' OR (
        referendum_question_id IS NOT NULL AND referendum_answer IS NOT NULL
        AND party_id IS NULL AND candidate_id IS NULL
    ))
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_votes_one_per_ballot
    ON votes(election_id, voter_hash, ballot_type)
    WHERE ballot_type IN ('PARTY_LIST', 'CONSTITUENCY');

CREATE UNIQUE INDEX IF NOT EXISTS idx_votes_one_per_question
    ON votes(election_id, voter_hash, referendum_question_id)
    WHERE ballot_type = 'REFERENDUM';

CREATE INDEX IF NOT EXISTS idx_votes_party ON votes(election_id, party_id);
CREATE INDEX IF NOT EXISTS idx_votes_candidate ON votes(election_id, candidate_id);

-- ============================================
-- DISTRICT VOTE BATCHES
-- ============================================
CREATE TABLE IF NOT EXISTS vote_batches (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    election_id UUID NOT NULL REFERENCES elections(id) ON DELETE CASCADE,
    district_id VARCHAR(150) NOT NULL REFERENCES districts(id),
    submitted_by_id UUID NOT NULL REFERENCES users(id),
    approved_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
    status VARCHAR(20) NOT NULL DEFAULT 'PENDING' CHECK (status IN (
        'PENDING', 'APPROVED', 'REJECTED'
    )),
    total_votes INTEGER NOT NULL DEFAULT 0 CHECK (total_votes >= 0),
    notes TEXT,
    rejection_reason TEXT,
    reviewed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_vote_batches_one_pending
    ON vote_batches(election_id, district_id)
    WHERE status = 'PENDING';

CREATE INDEX IF NOT EXISTS idx_vote_batches_status ON vote_batches(election_id, status);

CREATE TABLE IF NOT EXISTS batch_party_votes (
    batch_id UUID NOT NULL REFERENCES vote_batches(id) ON DELETE CASCADE,
    party_id UUID NOT NULL REFERENCES parties(id),
    vote_count INTEGER NOT NULL CHECK (vote_count >= 0),
    PRIMARY KEY (batch_id, party_id)
);

CREATE TABLE IF NOT EXISTS batch_constituency_votes (
    batch_id UUID NOT NULL REFERENCES vote_batches(id) ON DELETE CASCADE,
    candidate_id UUID NOT NULL REFERENCES candidates(id),
    vote_count INTEGER NOT NULL CHECK (vote_count >= 0),
    PRIMARY KEY (batch_id, candidate_id)
);

CREATE TABLE IF NOT EXISTS batch_referendum_votes (
    batch_id UUID NOT NULL REFERENCES vote_batches(id) ON DELETE CASCADE,
    question_id UUID NOT NULL REFERENCES referendum_questions(id),
    approve_count INTEGER NOT NULL DEFAULT 0 CHECK (approve_count >= 0),
    disapprove_count INTEGER NOT NULL DEFAULT 0 CHECK (disapprove_count >= 0),
    abstain_count INTEGER NOT NULL DEFAULT 0 CHECK (abstain_count >= 0),
    PRIMARY KEY (batch_id, question_id)
);

CREATE TABLE IF NOT EXISTS vote_batch_events (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    batch_id UUID NOT NULL REFERENCES vote_batches(id) ON DELETE CASCADE,
    action VARCHAR(20) NOT NULL,
    performed_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
    from_status VARCHAR(20),
    to_status VARCHAR(20),
    notes TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
);

CREATE INDEX IF NOT EXISTS idx_vote_batch_events_batch ON vote_batch_events(batch_id, created_at);
"""

DROP_SQL = """
DROP TABLE IF EXISTS vote_batch_events CASCADE;
DROP TABLE IF EXISTS batch_referendum_votes CASCADE;
DROP TABLE IF EXISTS batch_constituency_votes CASCADE;
DROP TABLE IF EXISTS batch_party_votes CASCADE;
DROP TABLE IF EXISTS vote_batches CASCADE;
DROP TABLE IF EXISTS votes CASCADE;
DROP TABLE IF EXISTS ballot_casts CASCADE;
DROP TABLE IF EXISTS referendum_questions CASCADE;
DROP TABLE IF EXISTS candidates CASCADE;
DROP TABLE IF EXISTS parties CASCADE;
DROP TABLE IF EXISTS elections CASCADE;
DROP TABLE IF EXISTS users CASCADE;
DROP TABLE IF EXISTS districts CASCADE;
DROP TABLE IF EXISTS provinces CASCADE;
DROP TABLE IF EXISTS regions CASCADE;
"""
