"""Database module with facade pattern over the domain managers."""

from core.db.database import MusicDatabase

# Database initialization tables
# These tables are created when the database is first initialized
# and form the core schema of the engine
DB_TABLES = {
    'tracks': '''
        CREATE TABLE IF NOT EXISTS tracks
        (id INTEGER PRIMARY KEY AUTOINCREMENT,
         filepath TEXT UNIQUE NOT NULL,
         title TEXT,
         artist TEXT,
         album TEXT,
         duration INTEGER,
         added_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP)
    ''',
    'queues': '''
        CREATE TABLE IF NOT EXISTS queues
        (id INTEGER PRIMARY KEY AUTOINCREMENT,
         name TEXT UNIQUE NOT NULL,
         is_active BOOLEAN DEFAULT 0,
         current_index INTEGER DEFAULT 0,
         shuffle_seed INTEGER DEFAULT 1,
         shuffle_anchor INTEGER DEFAULT 0,
         content_hash TEXT,
         date_created INTEGER NOT NULL,
         date_modified INTEGER NOT NULL)
    ''',
    'queue_tracks': '''
        CREATE TABLE IF NOT EXISTS queue_tracks
        (id INTEGER PRIMARY KEY AUTOINCREMENT,
         queue_id INTEGER NOT NULL,
         track_id INTEGER NOT NULL,
         position INTEGER NOT NULL,
         FOREIGN KEY (queue_id) REFERENCES queues(id) ON DELETE CASCADE,
         FOREIGN KEY (track_id) REFERENCES tracks(id) ON DELETE CASCADE)
    ''',
    'settings': '''
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT
        )
    ''',
    'idx_queue_tracks_queue': '''
        CREATE INDEX IF NOT EXISTS idx_queue_tracks_queue
        ON queue_tracks(queue_id, position)
    ''',
    'idx_queues_content_hash': '''
        CREATE INDEX IF NOT EXISTS idx_queues_content_hash
        ON queues(content_hash)
    ''',
}

__all__ = ['MusicDatabase', 'DB_TABLES']
